"""HTTP route modules; each exposes an APIRouter named ``router``."""
