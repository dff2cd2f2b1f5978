from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cafe_loyalty.db import engine, Base
from cafe_loyalty.errors import LoyaltyError

import cafe_loyalty.models.registry  # noqa: F401

from cafe_loyalty.routes.events import router as events_router
from cafe_loyalty.routes.accounts import router as accounts_router
from cafe_loyalty.routes.redemptions import router as redemptions_router
from cafe_loyalty.routes.loyalty_tiers import router as loyalty_tiers_router
from cafe_loyalty.routes.promotions import router as promotions_router
from cafe_loyalty.routes.rewards import router as rewards_router
from cafe_loyalty.routes.challenges import router as challenges_router
from cafe_loyalty.routes.admin import router as admin_router

app = FastAPI(title="Cafe Loyalty Engine")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "https://localhost:3000",
        "http://127.0.0.1:3000",
        "https://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


@app.exception_handler(LoyaltyError)
def loyalty_error_handler(request: Request, exc: LoyaltyError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


app.include_router(events_router)
app.include_router(accounts_router)
app.include_router(redemptions_router)
app.include_router(loyalty_tiers_router)
app.include_router(promotions_router)
app.include_router(rewards_router)
app.include_router(challenges_router)
app.include_router(admin_router)


@app.get("/")
def read_root():
    return {"message": "Cafe Loyalty Engine is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001, reload=True)
