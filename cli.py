import argparse
import asyncio
import json
import shutil

from config import YamlConfig, setup_logger
from db import Database, MuscleRepository, WorkoutRepository

DEFAULT_MUSCLES = ["Bicep", "Tricep", "Quad", "Hamstring", "Rear Delt"]


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def vacuum_db(db_path: str) -> None:
    Database(db_path).vacuum()


async def seed_muscles(db_path: str, names: list[str] | None = None) -> list[str]:
    """Insert the default muscle taxonomy, skipping names already present."""
    repo = MuscleRepository(db_path)
    existing = {m["name"] for m in await repo.fetch_all_muscles()}
    added: list[str] = []
    for name in names or DEFAULT_MUSCLES:
        if name in existing:
            continue
        await repo.add(name)
        added.append(name)
    return added


async def export_workouts(db_path: str, user_id: str, out_path: str) -> int:
    """Write every workout of ``user_id`` to ``out_path`` as JSON."""
    workouts = await WorkoutRepository(db_path).fetch_for_owner(user_id)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump({"workouts": workouts}, f, indent=2)
    return len(workouts)


def serve(host: str, port: int, yaml_path: str) -> None:
    import uvicorn

    settings = YamlConfig(yaml_path).settings()
    setup_logger(settings.log_level, settings.log_file)
    uvicorn.run("rest_api:app", host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--yaml", default="settings.yaml")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="workout.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="workout.db")

    vac = sub.add_parser("vacuum")
    vac.add_argument("--db", default="workout.db")

    seed = sub.add_parser("seed-muscles")
    seed.add_argument("--db", default="workout.db")

    exp = sub.add_parser("export")
    exp.add_argument("--db", default="workout.db")
    exp.add_argument("--user", required=True)
    exp.add_argument("--out", default="workouts.json")

    args = parser.parse_args()

    if args.cmd == "serve":
        serve(args.host, args.port, args.yaml)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "vacuum":
        vacuum_db(args.db)
    elif args.cmd == "seed-muscles":
        added = asyncio.run(seed_muscles(args.db))
        print(f"Added {len(added)} muscles")
    elif args.cmd == "export":
        count = asyncio.run(export_workouts(args.db, args.user, args.out))
        print(f"Exported {count} workouts to {args.out}")


if __name__ == "__main__":
    main()
