# Import all the models, so that Base has them before being
# imported by Alembic
from pushrelay.models.base_import import Base  # noqa
from pushrelay.models.device_model import Device  # noqa
