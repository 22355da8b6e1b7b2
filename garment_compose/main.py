from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from garment_compose.config import logger

from .routers import router

# Initialize FastAPI application
app = FastAPI(
    title="Garment Compose API",
    description="AI-powered garment composition and virtual try-on editing",
    version="1.0.0",
)

app.include_router(router)


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


logger.info("Garment Compose API initialized successfully")
