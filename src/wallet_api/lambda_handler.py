"""Lambda handler for the Wallet API using Mangum."""
import logging

from mangum import Mangum

from wallet_api.main import create_app
from wallet_api.settings import get_settings

settings = get_settings()
logging.basicConfig(level=settings.log_level)

# Create FastAPI app
app = create_app(settings)

# Wrap with Mangum for Lambda compatibility
handler = Mangum(app, lifespan="off")

# Export handler for Lambda runtime
lambda_handler = handler
