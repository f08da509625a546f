"""
Mock Data Routes
Endpoint for generating sample data from a schema description
"""
from fastapi import APIRouter, Depends
import logging

from storytests.mock_data import MockDataGenerator

from ..models.mockdata import MockDataRequest, MockDataResponse
from ..models.test_generation import ErrorResponse
from ..dependencies import get_mock_data_generator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/mockdata",
          tags=["Mock Data"],
          response_model=MockDataResponse,
          response_model_exclude_none=True,
          responses={400: {"model": ErrorResponse}},
          summary="Generate mock data",
          description="Generate sample rows as JSON or CSV. With previewOnly the prompt is returned instead of data. Without a configured LLM, or when it fails, rows are produced locally.")
def generate_mock_data(
    request: MockDataRequest,
    generator: MockDataGenerator = Depends(get_mock_data_generator)
):
    """Generate mock data rows"""
    logger.info(f"Mock data request: rows={request.rows} format={request.format} preview={request.previewOnly}")
    return generator.generate(request)
