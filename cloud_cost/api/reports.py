"""Cost report API endpoints"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
import structlog

from cloud_cost.middleware.authentication import AuthContext
from cloud_cost.models.schemas import ReportDocument
from cloud_cost.utils.errors import AuthError, ErrorCode, create_error_response

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get(
    "/aws",
    response_model=ReportDocument,
    response_model_exclude_none=True,
    responses={401: {"description": "Trust header missing"}},
)
async def get_aws_report(request: Request):
    """
    Month-to-date AWS cost across all configured accounts.

    Accounts that could not be queried are listed with ``failed: true`` and
    never count towards the totals.
    """
    report_service = request.app.state.report_service

    try:
        report = await report_service.handle_report_request(AuthContext.from_request(request))
    except AuthError as e:
        logger.info("report_request_rejected", path=request.url.path, reason=e.message)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=create_error_response(ErrorCode.UNAUTHORIZED, e.message),
        )

    logger.info(
        "report_served",
        accounts=len(report.summaries),
        failed=len(report.failed_accounts),
    )
    return ReportDocument.from_report(report)
