"""
Sales controller/router for FastAPI endpoints.

Direct access to the sales aggregation engine and the CSV import.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, File, Path, UploadFile, status
from fastapi.responses import StreamingResponse

from salesbot.controller.utils import NDJSON_MEDIA_TYPE, ndjson_stream
from salesbot.dependencies.auth import CurrentUserDep
from salesbot.dependencies.common import SettingsDep
from salesbot.dependencies.sales import SalesIngestionServiceDep, SalesServiceDep
from salesbot.exceptions.sales import IngestionException
from salesbot.models import ResponseModel
from salesbot.models.sales import (
    MetadataQuery,
    SalesAnalyticsRequest,
    SalesAnswer,
    TopAggregatesRequest,
)

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/sales",
    tags=["Sales"],
    responses={
        401: {"description": "Unauthorized - Missing or invalid session"},
        422: {"description": "Unprocessable Entity - Invalid request"},
        500: {"description": "Internal Server Error"},
    },
)


@router.post(
    "/upload",
    response_class=StreamingResponse,
    responses={
        200: {
            "description": "Stream of embedding, insertion, complete and error progress events",
            "content": {NDJSON_MEDIA_TYPE: {}},
        },
    },
    summary="Import sales CSV",
    description="Import an accounting sales export, streaming progress as NDJSON",
)
async def upload_sales(
    current_user: CurrentUserDep,
    ingestion_service: SalesIngestionServiceDep,
    settings: SettingsDep,
    file: UploadFile = File(..., description="Sales export in CSV format"),
):
    """
    Import a sales export.

    Rows already stored (same invoice, item and total) are skipped, so the
    same file can be uploaded again safely.
    """
    content = await file.read()
    if not content:
        raise IngestionException("No file uploaded", field="file")
    if len(content) > settings.SERVER.MAX_UPLOAD_SIZE:
        raise IngestionException(
            f"File exceeds the {settings.SERVER.MAX_UPLOAD_SIZE} byte upload limit",
            field="file",
            value=len(content),
        )

    source = file.filename or "upload.csv"
    sales = await ingestion_service.prepare_csv(content)
    logger.info(
        "Sales import started",
        source=source,
        rows=len(sales),
        user_id=current_user.user_id,
    )
    return StreamingResponse(
        ndjson_stream(ingestion_service.ingest(sales, source)),
        media_type=NDJSON_MEDIA_TYPE,
    )


@router.post(
    "/analytics",
    response_model=ResponseModel[SalesAnswer],
    summary="Sales analytics",
    description="Run a FILTER, SUMMARY, ANALYTICS or TREND request",
)
async def sales_analytics(
    request: SalesAnalyticsRequest,
    current_user: CurrentUserDep,
    sales_service: SalesServiceDep,
):
    answer = await sales_service.aggregate(request)
    return ResponseModel(status_code=status.HTTP_200_OK, data=SalesAnswer(answer=answer))


@router.post(
    "/aggregates",
    response_model=ResponseModel[SalesAnswer],
    summary="Top sales groups",
    description="Rank items, states, customers, invoices or payment methods",
)
async def top_aggregates(
    request: TopAggregatesRequest,
    current_user: CurrentUserDep,
    sales_service: SalesServiceDep,
):
    answer = await sales_service.top_aggregates(request)
    return ResponseModel(status_code=status.HTTP_200_OK, data=SalesAnswer(answer=answer))


@router.get(
    "/invoices/{invoice}",
    response_model=ResponseModel[SalesAnswer],
    summary="Invoice details",
    description="Every line item of an invoice with the overall total",
)
async def invoice_details(
    invoice: Annotated[str, Path(min_length=1, description="Invoice number")],
    current_user: CurrentUserDep,
    sales_service: SalesServiceDep,
):
    answer = await sales_service.invoice_details(invoice.strip())
    return ResponseModel(status_code=status.HTTP_200_OK, data=SalesAnswer(answer=answer))


@router.get(
    "/metadata/{query_type}",
    response_model=ResponseModel[SalesAnswer],
    summary="Dataset metadata",
    description="Available payment methods, regions or the date range of the data",
)
async def sales_metadata(
    query_type: MetadataQuery,
    current_user: CurrentUserDep,
    sales_service: SalesServiceDep,
):
    answer = await sales_service.metadata(query_type)
    return ResponseModel(status_code=status.HTTP_200_OK, data=SalesAnswer(answer=answer))
