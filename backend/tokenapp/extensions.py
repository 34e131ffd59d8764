# Overview: Flask extension instances for database, migrations and outbound HTTP clients.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .clients.payment_gateway import PaymentGatewayClient
from .clients.vending import VendingClient

db = SQLAlchemy()
migrate = Migrate()
payment_gateway = PaymentGatewayClient()
vending_client = VendingClient()
