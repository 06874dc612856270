import os
from pathlib import Path

from dotenv import load_dotenv

# .env na raiz do projeto
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barberflow.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# JWT
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn("SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2)
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

# URLs públicas (webhooks e retorno do checkout)
PUBLIC_API_URL = os.getenv("PUBLIC_API_URL", "http://localhost:8000")
PUBLIC_SITE_URL = os.getenv("PUBLIC_SITE_URL", "http://localhost:5173")

# Mercado Pago (o access token fica em cada barbearia)
MERCADOPAGO_API_URL = os.getenv("MERCADOPAGO_API_URL", "https://api.mercadopago.com")
MERCADOPAGO_TIMEOUT = float(os.getenv("MERCADOPAGO_TIMEOUT", "10"))

# WhatsApp via Evolution API
EVOLUTION_API_URL = os.getenv("EVOLUTION_API_URL")
EVOLUTION_API_KEY = os.getenv("EVOLUTION_API_KEY")
EVOLUTION_INSTANCE = os.getenv("EVOLUTION_INSTANCE", "default")
WHATSAPP_TIMEOUT = float(os.getenv("WHATSAPP_TIMEOUT", "10"))

LOCAL_TZ = os.getenv("LOCAL_TZ", "America/Sao_Paulo")

# agendamento com pagamento obrigatório é cancelado se não pago nesse prazo
PENDING_PAYMENT_GRACE_MINUTES = int(os.getenv("PENDING_PAYMENT_GRACE_MINUTES", "15"))

REDIS_URL = os.getenv("REDIS_URL")
