from __future__ import annotations
import json
import os
from datetime import datetime
import click
from flask import Flask
from .blueprints.routines import services as routine_services
from .extensions import db
from .models import Sector, Task, Unit, User


def register_seed_command(app: Flask):
    @app.cli.command("seed")
    def seed():
        """Cria setor, gerência/unidades e usuários de teste (admin, gestor, usuário)."""
        created = 0

        sector = Sector.query.filter_by(name="Operações").first()
        if not sector:
            sector = Sector(name="Operações", active=True)
            db.session.add(sector)
            db.session.flush()

        def upsert_unit(code, name, parent=None):
            u = Unit.query.filter_by(code=code).first()
            if not u:
                u = Unit(code=code, name=name, sector_id=sector.id)
                db.session.add(u)
            u.parent_id = parent.id if parent else None
            db.session.flush()
            return u

        gerencia = upsert_unit("GER-01", "Gerência Regional")
        unidade = upsert_unit("UN-01", "Unidade Centro", gerencia)
        upsert_unit("UN-02", "Unidade Norte", gerencia)

        def upsert_user(email, nome, role, unit_id=None):
            nonlocal created
            u = User.query.filter_by(email=email).first()
            if not u:
                u = User(email=email, full_name=nome, role=role, status="active")
                u.set_password("admin123")
                db.session.add(u)
                created += 1
            else:
                u.full_name = nome
                u.role = role
                u.status = "active"
            u.unit_id = unit_id
            u.sector_id = sector.id
            return u

        upsert_user("admin@local", "Administrador", "admin")
        upsert_user("gestor@local", "Gestor", "gestor")
        upsert_user("colab@local", "Colaborador", "usuario", unidade.id)

        db.session.commit()
        click.echo(f"Seed concluído. Usuários criados: {created}")


def register_diagnostic_commands(app: Flask):
    @app.cli.command("find-tasks")
    @click.argument("title")
    @click.option("--limit", default=50, show_default=True)
    def find_tasks(title: str, limit: int):
        """Lista (JSON) as tarefas cujo título contém TITLE."""
        if not os.getenv("SQLALCHEMY_DATABASE_URI"):
            raise click.ClickException(
                "SQLALCHEMY_DATABASE_URI não definido. Configure o .env com o banco a inspecionar."
            )

        tasks = (
            Task.query
            .filter(Task.title.ilike(f"%{title}%"))
            .order_by(Task.created_at.desc())
            .limit(limit)
            .all()
        )
        click.echo(json.dumps([t.to_dict() for t in tasks], indent=2, ensure_ascii=False))


def register_recurring_command(app: Flask):
    @app.cli.command("process-recurring")
    @click.option("--now", "now", default=None, help="Data/hora de referência (ISO). Padrão: agora.")
    def process_recurring(now: str | None):
        """Abre o próximo período das rotinas em modo schedule (agendar no cron)."""
        reference = None
        if now:
            try:
                reference = datetime.fromisoformat(now)
            except ValueError:
                raise click.BadParameter(f"Data inválida: {now}", param_hint="--now")

        result = routine_services.process_recurring(reference)
        click.echo(f"Rotinas processadas: {result['processed']}. Períodos abertos: {result['created']}")
