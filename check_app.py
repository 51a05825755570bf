import sys
import os

# Add the api directory to sys.path
sys.path.append(os.path.join(os.getcwd(), "services/api"))

REQUIRED_ROUTES = ("/api/recipe-extract", "/api/recipe-generate-cards")

try:
    from nosh.main import app
    print("App imported successfully")

    paths = {route.path for route in app.routes if hasattr(route, "path")}
    missing = [p for p in REQUIRED_ROUTES if p not in paths]
    for p in REQUIRED_ROUTES:
        if p in paths:
            print(f"Found route: {p}")

    if missing:
        print(f"ERROR: Routes NOT FOUND: {', '.join(missing)}")
        sys.exit(1)

except Exception as e:
    print(f"App import failed: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
