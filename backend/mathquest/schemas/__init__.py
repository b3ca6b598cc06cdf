from mathquest.schemas.certificate import (
    CertificateIssueResponse,
    CertificateRequestCreate,
    CertificateRequestCreateResponse,
    CertificateRequestRead,
    DeleteResponse,
)
from mathquest.schemas.leaderboard import (
    LeaderboardRow,
    ScoreSubmission,
    ScoreSubmissionResponse,
)
from mathquest.schemas.problem import ProblemRequest, ProblemResponse, QuotaDeniedResponse

__all__ = [
    "CertificateIssueResponse",
    "CertificateRequestCreate",
    "CertificateRequestCreateResponse",
    "CertificateRequestRead",
    "DeleteResponse",
    "LeaderboardRow",
    "ProblemRequest",
    "ProblemResponse",
    "QuotaDeniedResponse",
    "ScoreSubmission",
    "ScoreSubmissionResponse",
]
