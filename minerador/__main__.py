"""
CLI do minerador.

Usage:
    python -m minerador mine [--target 20] [--uf SP] [--porte ME] [--capital-minimo 50000]
    python -m minerador validate <cnpj>
    python -m minerador generate [--count 10] [--prefix 33000167] [--uf SP]
    python -m minerador lookup <cnpj>
    python -m minerador claim <cnpj>
    python -m minerador stats
    python -m minerador clear
"""

import argparse
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _print_company(company):
    print("\n" + "=" * 50)
    print(f"  CNPJ: {company.cnpj}")
    print("=" * 50)
    for key, value in company.model_dump(exclude={"cnpj", "trust_score_breakdown"}).items():
        if isinstance(value, list):
            print(f"  {key}: [{len(value)} itens]")
            for item in value[:5]:
                print(f"    - {item.get('nome', item)}")
        elif value:
            print(f"  {key}: {value}")
    if company.trust_score_breakdown:
        print(f"  trust: {company.trust_score_breakdown.label}")
    print("=" * 50)


def _print_stats(stats):
    print("\n" + "=" * 50)
    print("  Cache de Mineração - Estatísticas")
    print("=" * 50)
    for key, value in stats.model_dump().items():
        print(f"  {key.title():.<30} {value:>10,}")
    print("=" * 50)


def _print_progress(progress):
    print(
        f"\r  Tentativas: {progress.tried:>5}  Encontradas: {progress.found:>3}/{progress.target} "
        f"({progress.percentage:.0f}%)",
        end="",
        flush=True,
    )


async def _mine(args):
    from minerador.core.config import settings
    from minerador.schemas.mining import MiningCriteria, MiningState
    from minerador.services.container import build_services

    criteria = MiningCriteria(
        capital_minimo=args.capital_minimo or 0,
        use_capital_filter=args.capital_minimo is not None,
        uf=args.uf,
        porte=args.porte,
    )
    services = await build_services(settings)
    controller = services.controller
    controller.add_listener(_print_progress)
    try:
        controller.start(criteria, args.target)
        try:
            status = await controller.wait()
        except asyncio.CancelledError:
            controller.stop()
            status = await controller.wait()
    finally:
        await services.close()

    print()
    print("-" * 80)
    for c in status.companies:
        print(f"  {c.cnpj}  {c.razao_social[:45]:<45}  {c.uf:<2}  {c.porte:<6}  {c.trust_score}")
    print("-" * 80)
    if status.state == MiningState.FAILED:
        print(f"Falhou: {status.error}")
        return 1
    print(f"Estado final: {status.state.value}")
    return 0


def cmd_mine(args):
    """Run a mining session in the foreground."""
    try:
        sys.exit(asyncio.run(_mine(args)))
    except KeyboardInterrupt:
        print("\nInterrompido.")
        sys.exit(130)


def cmd_validate(args):
    """Validate check digits."""
    from minerador.services.cnpj_generator import format_cnpj, validate

    if validate(args.cnpj):
        print(f"{format_cnpj(args.cnpj)} é válido")
        return
    print(f"{args.cnpj} é inválido")
    sys.exit(1)


def cmd_generate(args):
    """Generate valid CNPJs."""
    from minerador.services.cnpj_generator import format_cnpj, generate

    for _ in range(args.count):
        print(format_cnpj(generate(known_prefix=args.prefix, uf=args.uf)))


async def _lookup(args):
    from minerador.core.config import settings
    from minerador.services.registry_client import (
        RegistryClient,
        create_http_client,
    )

    async with create_http_client(settings.REGISTRY_TIMEOUT) as http:
        client = RegistryClient(
            http,
            provider=settings.REGISTRY_PROVIDER,
            base_url=settings.REGISTRY_BASE_URL or None,
        )
        return await client.fetch(args.cnpj)


def cmd_lookup(args):
    """Query a CNPJ in the configured registry."""
    from minerador.services.cnpj_generator import validate
    from minerador.services.registry_client import RegistryError

    if not validate(args.cnpj):
        print(f"CNPJ {args.cnpj} inválido.")
        sys.exit(1)

    try:
        company = asyncio.run(_lookup(args))
    except RegistryError as e:
        print(f"Erro ao consultar: {e}")
        sys.exit(2)

    if company is None:
        print(f"CNPJ {args.cnpj} não encontrado.")
        sys.exit(1)
    _print_company(company)


async def _claim(args):
    from minerador.core.config import settings
    from minerador.services.container import build_services

    services = await build_services(settings)
    try:
        await services.cache.initialize()
        return services.cache.mark_used(args.cnpj)
    finally:
        await services.close()


def cmd_claim(args):
    """Mark a CNPJ as used."""
    from minerador.services.cnpj_generator import clean, validate

    if not validate(args.cnpj):
        print(f"CNPJ {args.cnpj} inválido.")
        sys.exit(1)

    args.cnpj = clean(args.cnpj)
    if asyncio.run(_claim(args)):
        print(f"{args.cnpj} marcado como usado.")
    else:
        print(f"{args.cnpj} já estava marcado como usado.")


async def _stats():
    from minerador.core.config import settings
    from minerador.services.container import build_services

    services = await build_services(settings)
    try:
        return await services.cache.initialize()
    finally:
        await services.close()


def cmd_stats(args):
    """Show cache statistics."""
    _print_stats(asyncio.run(_stats()))


def cmd_clear(args):
    """Clear the local cache."""
    from minerador.core.config import settings
    from minerador.services.container import create_local_store

    if not args.yes:
        answer = input("Apagar whitelist, blacklist e usados do cache local? [s/N] ")
        if answer.strip().lower() not in ("s", "sim", "y", "yes"):
            print("Cancelado.")
            return

    create_local_store(settings.LOCAL_CACHE_PATH).clear()
    print("Cache local limpo.")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="minerador",
        description="Minerador CNPJ - busca empresas ativas em APIs públicas",
    )
    subparsers = parser.add_subparsers(dest="command", help="Comando a executar")

    # mine
    m = subparsers.add_parser("mine", help="Executar uma mineração")
    m.add_argument("--target", type=int, default=None, help="Quantidade de empresas")
    m.add_argument("--uf", type=str, default="AUTO", help="Filtrar por UF (AUTO = qualquer)")
    m.add_argument("--porte", type=str, default="ANY", help="ANY, ME, EPP ou DEMAIS")
    m.add_argument(
        "--capital-minimo",
        type=float,
        default=None,
        help="Capital social mínimo (ativa o filtro de capital)",
    )

    # validate
    v = subparsers.add_parser("validate", help="Validar um CNPJ")
    v.add_argument("cnpj", type=str, help="CNPJ para validar")

    # generate
    g = subparsers.add_parser("generate", help="Gerar CNPJs válidos")
    g.add_argument("--count", type=int, default=10, help="Quantidade")
    g.add_argument("--prefix", type=str, default=None, help="Raiz de 8 dígitos")
    g.add_argument("--uf", type=str, default=None, help="Preferir raízes desta UF")

    # lookup
    lk = subparsers.add_parser("lookup", help="Consultar um CNPJ no provedor")
    lk.add_argument("cnpj", type=str, help="CNPJ para consultar")

    # claim
    c = subparsers.add_parser("claim", help="Marcar um CNPJ como usado")
    c.add_argument("cnpj", type=str, help="CNPJ usado")

    # stats
    subparsers.add_parser("stats", help="Estatísticas do cache")

    # clear
    cl = subparsers.add_parser("clear", help="Limpar o cache local")
    cl.add_argument("--yes", action="store_true", help="Não pedir confirmação")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "mine": cmd_mine,
        "validate": cmd_validate,
        "generate": cmd_generate,
        "lookup": cmd_lookup,
        "claim": cmd_claim,
        "stats": cmd_stats,
        "clear": cmd_clear,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
