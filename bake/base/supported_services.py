from typing import Literal


existing_services = Literal[
    "compute",
    "network",
    "block_storage",
    "image",
]


existing_cloud_providers = Literal["aws", "gcp"]
