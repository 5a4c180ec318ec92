from .admin import router as admin
from .auth import router as auth
from .download import router as download
from .files import router as files
from .organizations import router as organizations
from .users import router as users
