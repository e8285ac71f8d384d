"""Starter catalog for development and demos (prices in Naira)."""
from decimal import Decimal

SAMPLE_PRODUCTS = [
    {
        "product_id": "PRD-001",
        "name": "iPhone 15 Pro Max 256GB",
        "description": "Titanium design, A17 Pro chip, 48MP camera system, USB-C.",
        "price": Decimal("1450000"),
        "stock": 8,
        "category": "smartphones",
        "featured": True,
    },
    {
        "product_id": "PRD-002",
        "name": "Samsung Galaxy S24 Ultra 512GB",
        "description": "Galaxy AI, built-in S Pen, 200MP camera, titanium frame.",
        "price": Decimal("1280000"),
        "stock": 12,
        "category": "smartphones",
        "featured": True,
    },
    {
        "product_id": "PRD-003",
        "name": "MacBook Pro 14\" M3 Pro 16GB/512GB",
        "description": "M3 Pro chip, Liquid Retina XDR display, up to 18 hours battery.",
        "price": Decimal("2850000"),
        "stock": 5,
        "category": "laptops",
        "featured": True,
    },
    {
        "product_id": "PRD-004",
        "name": "Dell XPS 15 Intel i7 16GB/1TB",
        "description": "15.6\" OLED touch display, 13th Gen Intel Core i7, RTX 4050.",
        "price": Decimal("1850000"),
        "stock": 7,
        "category": "laptops",
        "featured": False,
    },
    {
        "product_id": "PRD-005",
        "name": "Apple AirPods Pro 2nd Gen",
        "description": "Active noise cancellation, adaptive audio, MagSafe USB-C case.",
        "price": Decimal("185000"),
        "stock": 25,
        "category": "accessories",
        "featured": True,
    },
    {
        "product_id": "PRD-006",
        "name": "Sony WH-1000XM5 Headphones",
        "description": "Industry-leading noise cancelling, 30 hours battery, multipoint.",
        "price": Decimal("295000"),
        "stock": 15,
        "category": "audio",
        "featured": True,
    },
    {
        "product_id": "PRD-007",
        "name": "Apple Watch Series 9 45mm GPS",
        "description": "S9 chip, double tap gesture, always-on Retina display.",
        "price": Decimal("385000"),
        "stock": 10,
        "category": "smartwatches",
        "featured": False,
    },
    {
        "product_id": "PRD-008",
        "name": "iPad Air M2 11\" 128GB WiFi",
        "description": "M2 chip, Liquid Retina display, Apple Pencil Pro support.",
        "price": Decimal("875000"),
        "stock": 9,
        "category": "tablets",
        "featured": False,
    },
    {
        "product_id": "PRD-009",
        "name": "PlayStation 5 Slim 1TB Bundle",
        "description": "Slim console with DualSense controller and two games.",
        "price": Decimal("685000"),
        "stock": 6,
        "category": "gaming",
        "featured": True,
    },
    {
        "product_id": "PRD-010",
        "name": "Canon EOS R6 Mark II Camera Body",
        "description": "24.2MP full-frame sensor, 40fps bursts, 6K RAW video output.",
        "price": Decimal("3250000"),
        "stock": 3,
        "category": "cameras",
        "featured": False,
    },
    {
        "product_id": "PRD-011",
        "name": "Samsung 65\" Neo QLED 4K TV",
        "description": "Quantum Mini LED, Neural Quantum 4K processor, Dolby Atmos.",
        "price": Decimal("1450000"),
        "stock": 4,
        "category": "accessories",
        "featured": False,
    },
    {
        "product_id": "PRD-012",
        "name": "Google Pixel 8 Pro 256GB",
        "description": "Tensor G3, Magic Editor, 7 years of OS updates.",
        "price": Decimal("985000"),
        "stock": 14,
        "category": "smartphones",
        "featured": False,
    },
]
