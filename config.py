import pathlib

# Output canvas size
WIDTH = 512
HEIGHT = 512

# Paths
ASSETS_PATH = pathlib.Path("Assets")
BUILD_PATH = pathlib.Path("Builds")
METADATA_FILE = "metadata.json"
TRAITS_FILE = "traits.csv"
OUTPUT_FORMAT = "png"

# Number of render attempts allowed to overlap
MAX_WORKERS = 8

# JSON metadata - EDIT THESE VALUES BEFORE RUNNING
BASE_IMAGE_URL = "ipfs://<-- Your CID Code-->"
BASE_NAME = "Bobiboum"
DESCRIPTION = ""

# Optional layers, ordered by id. Any of them may be left out of a combo.
# dimensions: [x, y, width, height] of the layer on the canvas
LAYERS = [
    {
        "id": 1,
        "name": "Background",
        "rarity": 1,
        "elements": ["blue.png", "green.png", "purple.png"],
        "dimensions": [0, 0, 512, 512],
    },
    {
        "id": 3,
        "name": "Eyes",
        "rarity": 1,
        "elements": ["happy.png", "sleepy.png"],
        "dimensions": [128, 160, 256, 96],
    },
    {
        "id": 4,
        "name": "Head Gear",
        "rarity": 0.2,
        "elements": ["crown.png", "cap.png"],
        "dimensions": [96, 0, 320, 160],
    },
    {
        "id": 5,
        "name": "Misc",
        "rarity": 0.5,
        "elements": ["sword.png"],
        "dimensions": [320, 256, 192, 256],
    },
]

# Required layers: always rendered together as one bundle
REQUIRED = [
    {
        "id": 2,
        "name": "Body",
        "rarity": 1,
        "elements": ["round.png", "square.png"],
        "dimensions": [64, 64, 384, 448],
    },
]
