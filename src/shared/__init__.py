"""Constants and helpers shared by the API service and the notice worker."""
