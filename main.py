from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
from dotenv import load_dotenv
import logging
import os

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

from mongo.client import mongo_connection
from users.router import router as users_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifespan of the FastAPI application"""
    # Startup
    try:
        await mongo_connection.connect()
    except Exception as e:
        # Requests retry the connection lazily
        logger.error(f"User directory DB not connected: {e}")
    yield

    # Shutdown
    await mongo_connection.disconnect()

# Create FastAPI app
app = FastAPI(
    title="User Directory API",
    description="User records with filtered, paginated and faceted queries over MongoDB",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI at /docs
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "User Directory API"}


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "mongo": mongo_connection.connected}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        forwarded_allow_ips="*"
        )
