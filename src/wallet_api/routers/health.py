from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from wallet_api.backend import Backend
from wallet_api.dependencies import get_backend

router = APIRouter()


@router.get("/health")
async def health_check(backend: Backend = Depends(get_backend)):
    """
    Health check endpoint for monitoring API status and component readiness.

    Returns the status of the document store and the object store along with
    the deployment mode.
    """
    health_status = {
        "status": "OK",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "deployment_mode": backend.settings.deployment_mode,
        "components": {
            "api": "ready",
            "database": "initializing",
            "storage": "initializing",
        },
        "ready": False,
    }

    # Check database status
    try:
        backend.db.count_documents("users")
        health_status["components"]["database"] = "ready"
    except Exception as e:
        health_status["components"]["database"] = f"error: {str(e)}"
        health_status["status"] = "DEGRADED"

    # Check object store status
    try:
        backend.s3_client.head_bucket(Bucket=backend.bucket_name)
        health_status["components"]["storage"] = "ready"
    except Exception as e:
        health_status["components"]["storage"] = f"error: {str(e)}"
        health_status["status"] = "DEGRADED"

    health_status["ready"] = all(
        state == "ready" for state in health_status["components"].values()
    )
    return health_status
