import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crossfit.router import router as crossfit_router
from crossfit.service import timer_manager
from coach.router import router as coach_router

from database import engine
import models

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create tables if missing
models.Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Hybrid Training Service",
    description="CrossFit workout runner (timer + scores) and AI goal coach for the HYBRID app.",
    version="1.0.0"
)

# CORS (mobile dev client + local web)
# In production, restrict allow_origins to the app's domains.
origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
    "http://localhost:8081",
    "http://localhost:19006",  # Expo web
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(crossfit_router)
app.include_router(coach_router)


@app.on_event("shutdown")
async def close_timers():
    timer_manager.close_all()


@app.get("/")
async def health_check():
    """
    Service health check
    """
    return {
        "status": "healthy",
        "service": "Hybrid Training Service",
        "version": "1.0.0"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
