def _iso(value):
    return value.isoformat() if value else None


def booking_to_dict(b):
    return {
        "id": b.id,
        "user_id": b.user_id,
        "machine_id": b.machine_id,
        "date": _iso(b.date),
        "time": b.time,
        "slot_key": b.slot_key,
        "status": b.status,
        "user_name": b.user_name,
        "user_email": b.user_email,
        "machine_name": b.machine_name,
        "machine_type": b.machine_type,
        "created_at": _iso(b.created_at),
        "updated_at": _iso(b.updated_at),
    }


def machine_to_dict(m, include_slots: bool = False):
    out = {
        "id": m.id,
        "name": m.name,
        "type": m.type,
        "description": m.description,
        "difficulty": m.difficulty,
        "status": m.status,
        "requires_certification": m.requires_certification,
        "maintenance_note": m.maintenance_note,
        "created_at": _iso(m.created_at),
        "updated_at": _iso(m.updated_at),
    }
    if include_slots:
        out["held_slots"] = sorted(m.held_slot_keys)
    return out


def user_to_dict(u):
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name,
        "roles": [r.name for r in u.roles],
        "certifications": sorted(u.certification_ids),
        "created_at": _iso(u.created_at),
    }
