# One APIRouter per resource, mounted under /api by myrevuhq.web.app
