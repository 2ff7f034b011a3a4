"""
Sample business records for development (memory store) and database seeding.
"""
from typing import List

from bizfinder.models.business import BusinessRecord

SAMPLE_BUSINESSES = [
    {
        "id": "biz-001",
        "slug": "moments-events",
        "name": "Moment's Events",
        "description": "<p>Decoración y montaje de <strong>eventos</strong> sociales y corporativos. Arreglos florales a domicilio.</p>",
        "address": "Av. Las Flores 123, San Salvador",
        "city": "San Salvador",
        "phone": "2222-1111",
        "whatsapp": "50377771111",
        "email": "hola@momentsevents.example",
        "instagram": "https://instagram.com/momentsevents",
        "opening": 8,
        "closing": 18,
        "verified": True,
        "featured": True,
        "tags": ["eventos", "flores"],
        "views": 340,
        "like_count": 25,
        "rating_count": 12,
        "rating_avg": 4.8,
    },
    {
        "id": "biz-002",
        "slug": "supermercado-abc",
        "name": "SuperMercado ABC",
        "description": "<p>Abarrotes, frutas y verduras frescas todos los días.</p>",
        "address": "Calle Principal 45, Santa Tecla",
        "city": "Santa Tecla",
        "phone": "2222-2222",
        "verified": True,
        "tags": ["compras"],
        "views": 910,
        "rating_count": 40,
        "rating_avg": 4.1,
    },
    {
        "id": "biz-003",
        "slug": "pupuseria-la-bendicion",
        "name": "Pupusería La Bendición",
        "description": "<p>Pupusas de queso, revueltas y loroco. Desayunos típicos &amp; café.</p>",
        "address": "Colonia Escalón, San Salvador",
        "city": "San Salvador",
        "whatsapp": "50377773333",
        "opening": 6,
        "closing": 21,
        "tags": ["comida", "pupusas", "restaurante"],
        "views": 520,
        "rating_count": 33,
        "rating_avg": 4.6,
    },
    {
        "id": "biz-004",
        "slug": "clinica-dental-sonrisas",
        "name": "Clínica Dental Sonrisas",
        "description": "<p>Odontología general, ortodoncia y limpiezas.</p>",
        "address": "Blvd. Los Próceres 200, San Salvador",
        "city": "San Salvador",
        "phone": "2222-4444",
        "email": "citas@sonrisas.example",
        "website": "https://sonrisas.example",
        "opening": 9,
        "closing": 17,
        "verified": True,
        "tags": ["salud", "dentista"],
        "views": 210,
        "rating_count": 8,
        "rating_avg": 4.9,
    },
    {
        "id": "biz-005",
        "slug": "techfix",
        "name": "TechFix",
        "description": "<p>Reparación de celulares, laptops y computadoras.</p>",
        "address": "Metrocentro local 12, Santa Ana",
        "city": "Santa Ana",
        "phone": "2444-5555",
        "whatsapp": "50377775555",
        "tags": ["tecnologia", "reparaciones", "celulares"],
        "views": 150,
        "rating_count": 5,
        "rating_avg": 4.2,
    },
    {
        "id": "biz-006",
        "slug": "floristeria-primavera",
        "name": "Floristería Primavera",
        "description": "<p>Ramos y arreglos florales, entregas el mismo día.</p>",
        "address": "Calle Arce 10, San Salvador",
        "city": "San Salvador",
        "phone": "2222-6666",
        "tags": ["flores", "regalos"],
        "views": 95,
        "rating_count": 3,
        "rating_avg": 4.0,
    },
    {
        "id": "biz-007",
        "slug": "taller-mecanico-el-rapido",
        "name": "Taller Mecánico El Rápido",
        "description": "<p>Mantenimiento preventivo, frenos y cambio de aceite.</p>",
        "address": "Carretera al Puerto km 8, La Libertad",
        "city": "La Libertad",
        "phone": "2333-7777",
        "tags": ["servicios", "mecanica", "autos"],
        "views": 60,
    },
    {
        "id": "biz-008",
        "slug": "boutique-cerrada",
        "name": "Boutique Luna",
        "description": "<p>Ropa y accesorios.</p>",
        "address": "Centro Histórico, San Salvador",
        "city": "San Salvador",
        "status": "Inactive",
        "tags": ["ropa", "compras"],
        "views": 500,
    },
]


def sample_businesses() -> List[BusinessRecord]:
    return [BusinessRecord.model_validate(item) for item in SAMPLE_BUSINESSES]
