import logging
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, configure_logging
from database import init_db, make_engine, make_session_factory
from errors import ScoreServiceError
from leaderboard import TOP_SCORE, get_leaderboard, list_photos
from receipts import Web3ReceiptClient
from schemas import OkResponse, PhotoOut, ScoreSubmission, SignScoreRequest, SignScoreResponse
from signer import ScoreSigner
from store import ScoreStore
from verifier import ScoreVerifier, VerifierConfig

logger = logging.getLogger(__name__)


# -------------------
# Dependencies
# -------------------
def get_signer(request: Request) -> ScoreSigner:
    return request.app.state.signer


def get_verifier(request: Request) -> ScoreVerifier:
    return request.app.state.verifier


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


# -------------------
# Error responses: always {"error": "..."}
# -------------------
async def score_service_error_handler(request: Request, exc: ScoreServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # loc is ("body", <field>, ...); malformed JSON gives ("body", <offset>) instead
    fields = sorted({
        err["loc"][1] for err in exc.errors()
        if len(err.get("loc", ())) > 1 and isinstance(err["loc"][1], str)
    })
    message = "Missing or invalid fields: " + ", ".join(fields) if fields else "Invalid request body."
    return JSONResponse(status_code=400, content={"error": message})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None, receipt_client=None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="TimeGuesser API")

    engine = make_engine(settings.database_url)
    init_db(engine)
    session_factory = make_session_factory(engine)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.signer = ScoreSigner(settings.validator_private_key)
    app.state.verifier = ScoreVerifier(
        VerifierConfig(
            contract_address=settings.score_contract_address,
            chain_id=settings.chain_id,
            max_attempts=settings.receipt_max_attempts,
            base_delay=settings.receipt_base_delay,
            trust_unconfirmed_receipts=settings.trust_unconfirmed_receipts,
        ),
        receipt_client or Web3ReceiptClient(settings.rpc_url),
        ScoreStore(session_factory),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ScoreServiceError, score_service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    # -------------------
    # Sign a score for minting
    # -------------------
    @app.post("/api/sign-score", response_model=SignScoreResponse)
    def sign_score(body: SignScoreRequest, signer: ScoreSigner = Depends(get_signer)):
        signed = signer.sign_score(body.game_id, body.score, body.player)
        return SignScoreResponse(signature=signed.signature, validator_address=signed.validator_address)

    # -------------------
    # Verify a mint transaction and save the score
    # -------------------
    @app.post("/api/score", response_model=OkResponse)
    async def submit_score(
        submission: ScoreSubmission,
        request: Request,
        verifier: ScoreVerifier = Depends(get_verifier),
    ):
        logger.info("Score submitted - gameId=%s wallet=%s tx=%s", submission.game_id, submission.wallet, submission.tx_hash)
        await verifier.verify_and_record(submission, is_cancelled=request.is_disconnected)
        return OkResponse()

    # -------------------
    # Leaderboard
    # -------------------
    @app.get("/api/leaderboard")
    def leaderboard(
        board_type: str = Query(TOP_SCORE, alias="type"),
        limit: str = Query("10"),
        db=Depends(get_db),
    ):
        return {"leaderboard": get_leaderboard(db, board_type, limit)}

    # -------------------
    # Photo pool for the game UI
    # -------------------
    @app.get("/api/photos")
    def photos(db=Depends(get_db)):
        return {"photos": [PhotoOut.model_validate(p).model_dump() for p in list_photos(db)]}

    # -------------------
    # Farcaster mini app events
    # -------------------
    @app.post("/api/webhook")
    async def webhook(request: Request):
        try:
            event = await request.json()
        except ValueError:
            event = {}
        logger.info("Farcaster webhook event: %s", event)
        return {"success": True}

    @app.get("/api/webhook")
    def webhook_health():
        return {"status": "ok"}

    # -------------------
    # Health check
    # -------------------
    @app.get("/")
    def health_check():
        return {
            "status": "ok",
            "message": "TimeGuesser API is running",
            "endpoints": {
                "sign_score": "/api/sign-score",
                "score": "/api/score",
                "leaderboard": "/api/leaderboard",
                "photos": "/api/photos",
                "webhook": "/api/webhook",
            },
        }


app = create_app()
