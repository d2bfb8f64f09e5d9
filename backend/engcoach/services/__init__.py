"""Services — IO-bound orchestration around the pure core."""
