from crudkit.controllers.context import RequestContext
from crudkit.controllers.crud import CrudController, FormCrudController
from crudkit.controllers.forms import PydanticForm
from crudkit.controllers.gateway import AdapterModelGateway, DirectModelGateway, ModelGateway

__all__ = [
    "AdapterModelGateway",
    "CrudController",
    "DirectModelGateway",
    "FormCrudController",
    "ModelGateway",
    "PydanticForm",
    "RequestContext",
]
