import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pawpath.api.routers.chat_builder import router as chat_builder_router
from pawpath.api.routers.itineraries import router as itineraries_router
from pawpath.api.routers.places import router as places_router
from pawpath.api.routers.policies import router as policies_router
from pawpath.core.settings import get_settings

load_dotenv()


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    application = FastAPI(title="PawPath Backend")

    # Frontend dev servers
    allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # For deployments: ALLOWED_ORIGINS=https://app.example.com,https://www.example.com
    if settings.allowed_origins:
        allowed_origins.extend(
            [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
        )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    application.include_router(itineraries_router)
    application.include_router(chat_builder_router)
    application.include_router(policies_router)
    application.include_router(places_router)

    @application.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
