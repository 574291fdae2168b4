import argparse
import getpass
import shutil
import time

import requests

from auth_service import AuthService
from config import YamlConfig, setup_logging
from db import SessionRepository, UserRepository
from models import Role
from seed_sample_data import seed


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def create_admin(db_path: str, username: str, email: str, password: str) -> str:
    """Create an active admin account and return its id."""
    auth = AuthService(UserRepository(db_path), SessionRepository(db_path))
    user = auth.register(username, email, password, [Role.ADMIN])
    return user.id


def benchmark(url: str, runs: int = 10) -> None:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url}/health", timeout=5)
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")


def serve(db_path: str, yaml_path: str, host: str, port: int) -> None:
    import uvicorn

    from rest_api import GymAPI

    setup_logging(YamlConfig(yaml_path).settings().log_level)
    api = GymAPI(db_path=db_path, yaml_path=yaml_path)
    uvicorn.run(api.app, host=host, port=port, log_config=None)


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--db", default="gym.db")
    srv.add_argument("--yaml", default="settings.yaml")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    sd = sub.add_parser("seed")
    sd.add_argument("--db", default="gym.db")

    adm = sub.add_parser("create-admin")
    adm.add_argument("--db", default="gym.db")
    adm.add_argument("--username", required=True)
    adm.add_argument("--email", required=True)
    adm.add_argument("--password")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="gym.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="gym.db")

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default="http://localhost:8000")
    bench.add_argument("--runs", type=int, default=10)

    args = parser.parse_args()

    if args.cmd == "serve":
        serve(args.db, args.yaml, args.host, args.port)
    elif args.cmd == "seed":
        print(f"Seed data inserted: {seed(args.db)} templates")
    elif args.cmd == "create-admin":
        password = args.password or getpass.getpass("Password: ")
        uid = create_admin(args.db, args.username, args.email, password)
        print(f"Admin created: {uid}")
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "benchmark":
        benchmark(args.url, args.runs)


if __name__ == "__main__":
    main()
