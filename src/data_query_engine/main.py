from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .config import settings, build_engine
from .dispatcher import QueryEngine, outcome_note
from .errors import StructuredError
from .formatting import format_results_summary
from .logging import setup_logging, correlation_id_middleware
from .schemas import ErrorResponse, QueryRequest, QueryResponse

REQS = Counter("query_requests_total", "Total query requests", ["path", "outcome"])
LAT = Histogram("query_request_duration_ms", "Query duration in ms")

# Outcome note -> HTTP status
ERROR_STATUS = {
    "validation_error": 400,
    "unsupported_pattern": 422,
    "backend_error": 502,
    "cancelled": 499,
    "execution_error": 500,
}


def create_app(engine: Optional[QueryEngine] = None) -> FastAPI:
    """Build the HTTP transport around a QueryEngine.

    Args:
        engine: Engine to serve; defaults to one built from settings
    """
    app = FastAPI(title="Data Query Engine", version="0.1.0")
    app.middleware("http")(correlation_id_middleware)
    app.state.engine = engine or build_engine(settings)

    @app.get("/health")
    def health():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/schema")
    def schema(request: Request):
        backend = app.state.engine.backend
        if not hasattr(backend, "fetch_schema"):
            raise HTTPException(status_code=404, detail=f"Backend '{backend.name}' does not expose a schema")
        try:
            return backend.fetch_schema().model_dump()
        except StructuredError as e:
            notes = outcome_note(e)
            body = ErrorResponse(
                error=e.message,
                kind=e.kind,
                details=e.details,
                trace_id=getattr(request.state, "correlation_id", "unknown"),
                notes=notes,
            )
            return JSONResponse(body.model_dump(), status_code=ERROR_STATUS.get(notes, 500))

    @app.post("/query", response_model=QueryResponse, responses={400: {"model": ErrorResponse}})
    def query(req: QueryRequest, request: Request):
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        outcome = app.state.engine.run(req.query, correlation_id=correlation_id)
        LAT.observe(outcome.elapsed_ms)

        if not outcome.ok:
            REQS.labels(path="none", outcome=outcome.notes).inc()
            body = ErrorResponse(**outcome.data, trace_id=correlation_id, notes=outcome.notes)
            return JSONResponse(body.model_dump(), status_code=ERROR_STATUS.get(outcome.notes, 500))

        REQS.labels(path=outcome.path, outcome="success").inc()
        rows = outcome.data["rows"]
        return QueryResponse(
            rows=rows,
            row_count=outcome.data["row_count"],
            path=outcome.data["path"],
            rule=outcome.data["rule"],
            masked_summary=format_results_summary(rows, settings.redact_fields(req.role)),
            trace_id=correlation_id,
        )

    return app


setup_logging(settings.log_level)
app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("data_query_engine.main:app", host="127.0.0.1", port=8000, reload=True)
