import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from crudkit.api.crud_router import build_crud_router
from crudkit.controllers.books import book_controller, book_model_factories
from crudkit.core.config import settings
from crudkit.core.http_hardening import install_http_hardening
from crudkit.db.session import Base, engine, get_db

logging.getLogger("crudkit").addHandler(logging.NullHandler())


@asynccontextmanager
async def lifespan(_app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


def get_book_models(db: Session = Depends(get_db)) -> dict:
    return book_model_factories(db)


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)

app.include_router(build_crud_router(book_controller, prefix="/books", models_dependency=get_book_models))


@app.get("/", include_in_schema=False)
def landing():
    return JSONResponse({"service": settings.APP_NAME, "status": "ok"})


@app.get("/health")
def health():
    return {"status": "ok"}
