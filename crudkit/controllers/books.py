from sqlalchemy.orm import Session

from crudkit.controllers.crud import FormCrudController
from crudkit.controllers.forms import PydanticForm
from crudkit.core.config import CrudConfig
from crudkit.models.book import Book
from crudkit.schemas.book import BookSchema
from crudkit.services.sql_model import SqlAlchemyModel


class BookForm(PydanticForm):
    schema = BookSchema


class BookController(FormCrudController):
    pass


def book_model_factories(db: Session) -> dict:
    return {"Book": lambda ctx: SqlAlchemyModel(db, Book, ctx)}


book_controller = BookController(
    CrudConfig.from_settings("Book", default_template="books/edit"),
    model_cls=SqlAlchemyModel,
    form_class=BookForm,
)
