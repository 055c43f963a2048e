import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from coach.core.config import settings
from coach.routers import sessions

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")

app = FastAPI(title="SentenceCoach Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.env, "evaluator": settings.evaluator_backend}

app.include_router(sessions.router, prefix="/v1")
