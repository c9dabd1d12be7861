from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from staybook.config import get_settings
from staybook.database import Base, engine, get_db
from staybook.dependencies import ensure_owner, require_auth
from staybook.errors import NotFoundError, register_error_handlers
from staybook.logging_middleware import add_audit_middleware
from staybook.models import Spot, User
from staybook.rate_limit import apply_rate_limiter, limiter
from staybook.schemas import MessageRead, SpotCreate, SpotList, SpotRead, SpotUpdate

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Spots Service", version="0.2.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "spots")
    return fastapi_app


app = create_app()


def _get_spot(db: Session, spot_id: int) -> Spot:
    spot = db.get(Spot, spot_id)
    if not spot:
        raise NotFoundError("Spot couldn't be found")
    return spot


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "spots"}


@app.get("/spots", response_model=SpotList)
@limiter.limit("60/minute")
def list_spots(
    request: Request,
    page: int = Query(1, ge=1, le=10),
    size: int = Query(20, ge=1, le=20),
    db: Session = Depends(get_db),
) -> dict:
    spots = db.query(Spot).order_by(Spot.id).offset((page - 1) * size).limit(size).all()
    return {"Spots": spots, "page": page, "size": size}


@app.get("/spots/current", response_model=SpotList)
@limiter.limit("60/minute")
def list_my_spots(
    request: Request,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    spots = db.query(Spot).filter(Spot.owner_id == current_user.id).order_by(Spot.id).all()
    return {"Spots": spots, "page": 1, "size": len(spots)}


@app.get("/spots/{spot_id}", response_model=SpotRead)
@limiter.limit("60/minute")
def get_spot(request: Request, spot_id: int, db: Session = Depends(get_db)) -> Spot:
    return _get_spot(db, spot_id)


@app.post("/spots", response_model=SpotRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_spot(
    request: Request,
    spot_in: SpotCreate,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> Spot:
    spot = Spot(owner_id=current_user.id, **spot_in.model_dump())
    db.add(spot)
    db.commit()
    db.refresh(spot)
    return spot


@app.put("/spots/{spot_id}", response_model=SpotRead)
@limiter.limit("15/minute")
def update_spot(
    request: Request,
    spot_id: int,
    spot_update: SpotUpdate,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> Spot:
    spot = _get_spot(db, spot_id)
    ensure_owner(spot.owner_id, current_user)

    update_data = spot_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(spot, key, value)
    db.commit()
    db.refresh(spot)
    return spot


@app.delete("/spots/{spot_id}", response_model=MessageRead)
@limiter.limit("15/minute")
def delete_spot(
    request: Request,
    spot_id: int,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> MessageRead:
    spot = _get_spot(db, spot_id)
    ensure_owner(spot.owner_id, current_user)
    db.delete(spot)
    db.commit()
    return MessageRead(message="Successfully deleted")
