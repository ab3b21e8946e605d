"""
LogTrace - API Routes
=====================

FastAPI endpoints for parsing logs and locating their errors in source code.
Parsing and indexing are blocking, so they run on the threadpool.
"""

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool

from logtrace.config import get_settings
from logtrace.api.schemas import (
    ErrorLocation,
    IndexRequest,
    IndexSummary,
    LocateRequest,
    LocateResponse,
    ParsedLogResult,
    ParseRequest,
)
from logtrace.core.code_locator import CodeLocator
from logtrace.core.errors import ProjectIndexError
from logtrace.core.language_detector import display_name
from logtrace.core.log_parser import LogParser
from logtrace.core.project_indexer import ProjectIndexer
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["logtrace"])


# =============================================================================
# LOG PARSING ENDPOINTS
# =============================================================================

@router.post("/logs/parse", response_model=ParsedLogResult)
async def parse_log(request: ParseRequest):
    """
    Parse a log file into entries and correlated error entries.

    The file must be readable by the server process.
    """
    parser = LogParser()
    return await run_in_threadpool(
        parser.parse_file,
        request.log_path,
        stream_mode=request.stream_mode,
    )


@router.post("/locate", response_model=LocateResponse)
async def locate_errors(request: LocateRequest):
    """
    Parse a log file and locate each error in the project's source.

    When no project root is given it is detected from the log file's
    directory.
    """
    parser = LogParser()
    parsed = await run_in_threadpool(parser.parse_file, request.log_path)

    locator = CodeLocator()
    if request.project_root:
        await run_in_threadpool(locator.initialize, request.project_root)
        project_root = locator.project_root
    else:
        project_root = await run_in_threadpool(locator.auto_detect_project_root, request.log_path)

    locations = await run_in_threadpool(
        locator.locate_error_sources,
        parsed.error_entries,
        fuzzy_match=request.fuzzy_match,
        max_results=request.max_results,
    )

    logger.info(
        f"Located {len(parsed.error_entries)} errors in {project_root}",
        extra={
            "log_path": request.log_path,
            "error_count": len(parsed.error_entries),
            "index_used": locator.project_index is not None,
        }
    )

    return LocateResponse(
        project_root=project_root,
        format=parsed.format,
        total_lines=parsed.total_lines,
        error_count=len(parsed.error_entries),
        parse_errors=parsed.parse_errors,
        results=[
            ErrorLocation(error=error, location=locations[error.line_number])
            for error in parsed.error_entries
        ],
    )


# =============================================================================
# PROJECT ENDPOINTS
# =============================================================================

@router.post("/project/index", response_model=IndexSummary)
async def index_project(request: IndexRequest):
    """Index a project tree and summarize it by language."""
    indexer = ProjectIndexer()

    try:
        index = await run_in_threadpool(
            indexer.build_index,
            request.root_path,
            max_file_size_mb=request.max_file_size_mb,
        )
    except ProjectIndexError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return IndexSummary(
        root_path=index.root_path,
        total_files=index.total_files,
        language_counts={
            display_name(language): count
            for language, count in index.language_counts.items()
        },
        created_at=index.created_at,
    )


# =============================================================================
# CONFIGURATION ENDPOINTS
# =============================================================================

@router.get("/config")
async def get_config():
    """Effective configuration of this instance."""
    return get_settings().model_dump()
