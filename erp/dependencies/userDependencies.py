from typing import Annotated
from fastapi import Depends
from erp.modules.auth.dependencies import get_current_user, get_auth_context
from erp.modules.auth.models import User
from erp.modules.auth.schemas import AuthContext

user_dependency = Annotated[User, Depends(get_current_user)]
auth_context_dependency = Annotated[AuthContext, Depends(get_auth_context)]
