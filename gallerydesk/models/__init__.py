# Package init for gallerydesk.models
from .account import Account as Account
from .account import AccountSession as AccountSession
from .account import Base as Base  # explicit re-export
from .audit import PlanChangeAudit as PlanChangeAudit
from .gallery import Gallery as Gallery
from .gallery import GalleryState as GalleryState
