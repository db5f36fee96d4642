from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_wtf import CSRFProtect

from .realtime import ChangeFeed

db = SQLAlchemy()
login_manager = LoginManager()
csrf = CSRFProtect()

# feed de alterações (equivalente ao canal realtime por tabela)
changes = ChangeFeed()
