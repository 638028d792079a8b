"""Gate seed data: two gates per rank, E through S."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smp.db.models import Gate

logger = logging.getLogger(__name__)


def _gate(gate_id: str, rank: str, name: str, description: str, seed: str, map_name: str) -> dict:
    return {
        "id": gate_id,
        "rank": rank,
        "name": name,
        "description": description,
        "thumb_url": f"https://picsum.photos/seed/{seed}/400/300",
        "map_code": f"map_{map_name}_01",
        "capacity": 3,
        "is_active": True,
    }


GATE_SEED_DATA: list[dict] = [
    _gate("E_GOBLIN_CAVE", "E", "Goblin Cave",
          "A dark cave infested with weak goblins. Perfect for beginners.", "goblin", "goblin_cave"),
    _gate("E_SLIME_FOREST", "E", "Slime Forest",
          "A peaceful forest where slimes roam freely.", "slime", "slime_forest"),
    _gate("D_ORC_CAMP", "D", "Orc War Camp",
          "A fortified camp where orcs train for battle. Moderate danger.", "orc", "orc_camp"),
    _gate("D_ABANDONED_MINE", "D", "Abandoned Mine",
          "An old mine haunted by restless spirits and undead miners.", "mine", "abandoned_mine"),
    _gate("C_FROST_TEMPLE", "C", "Frost Temple",
          "An ancient temple frozen in time. Ice elementals guard its halls.", "frost", "frost_temple"),
    _gate("C_VOLCANIC_LAIR", "C", "Volcanic Lair",
          "A scorching dungeon filled with fire demons and lava beasts.", "volcano", "volcanic_lair"),
    _gate("B_DARK_CATHEDRAL", "B", "Dark Cathedral",
          "A corrupted cathedral where dark priests perform forbidden rituals.", "cathedral", "dark_cathedral"),
    _gate("B_SHADOW_FORTRESS", "B", "Shadow Fortress",
          "A massive fortress shrouded in darkness. High-level enemies await.", "fortress", "shadow_fortress"),
    _gate("A_DEMON_PALACE", "A", "Demon Palace",
          "The palace of a demon lord. Only the strongest hunters should enter.", "demon", "demon_palace"),
    _gate("A_DRAGON_NEST", "A", "Dragon's Nest",
          "Home to an ancient dragon. Extreme danger - form a strong party!", "dragon", "dragon_nest"),
    _gate("S_VOID_DIMENSION", "S", "Void Dimension",
          "A dimension beyond reality where eldritch horrors dwell. Death is certain.", "void", "void_dimension"),
    _gate("S_MONARCH_THRONE", "S", "Shadow Monarch's Throne",
          "The final challenge. Face the Shadow Monarch himself. Only legends survive.", "monarch", "monarch_throne"),
]


async def seed_gates(db: AsyncSession) -> int:
    """Upsert all seed gates, leaving live occupancy untouched. Returns number of gates seeded."""
    existing = {g.id: g for g in (await db.execute(select(Gate))).scalars().all()}

    seeded = 0
    for gate_data in GATE_SEED_DATA:
        gate = existing.get(gate_data["id"])
        if gate is None:
            db.add(Gate(**gate_data, occupancy=[]))
        else:
            for field, value in gate_data.items():
                setattr(gate, field, value)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d gates", seeded)
    return seeded
