from .admin import router as admin
from .auth import router as auth
from .links import router as links
from .public import router as public
from .uploads import router as uploads
