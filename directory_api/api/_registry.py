"""
Centralized router registry for all API endpoints
"""
from . import (
    auth,
    businesses,
    business_services,  # Services offered per business
    business_images,  # Logo, cover and gallery uploads
    business_hours,  # Weekly hours and live open/closed status
    reviews,
    customer_inquiries,  # Public contact form and owner inbox
    business_analytics,  # Event recording and owner dashboards
)

# All routers to be registered with the FastAPI app
ROUTERS = [
    auth.router,
    businesses.router,
    business_services.router,
    business_images.router,
    business_hours.router,
    reviews.router,
    customer_inquiries.router,
    business_analytics.router,
]
