import os

# Run and import
import uvicorn

uvicorn.run(
    "smartcanteen.app:app",
    host=os.environ.get("HOST", "0.0.0.0"),
    port=int(os.environ.get("PORT", "8000")),
    reload=False,
)
