# tools/seed_demo.py
"""
Carga un catálogo de demostración: dependencias, subdependencias, trámites,
OPAs y FAQs. Es idempotente: lo que ya existe (por código) no se toca.
"""
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from portal_core.db.database import get_db_session, init_db
from portal_core.db.faqs import create_faq
from portal_core.db.helpers import create_dependencia, create_subdependencia, get_dependencia_by_codigo
from portal_core.db.models import FAQ, Subdependencia
from portal_core.db.services import create_opa, create_tramite, get_opa_by_codigo, get_tramite_by_codigo


SEED = [
    # =========================================================
    # Secretaría de Hacienda
    # =========================================================
    dict(
        codigo="010",
        nombre="Secretaría de Hacienda",
        descripcion="Gestión tributaria, recaudo y finanzas del municipio.",
        subdependencias=[
            dict(
                codigo="011",
                nombre="Dirección de Rentas",
                tramites=[
                    dict(
                        codigo_unico="T-010-011-001",
                        nombre="Impuesto predial unificado",
                        descripcion=(
                            "Liquidación y pago del impuesto predial unificado para predios "
                            "urbanos y rurales ubicados en el municipio."
                        ),
                        tiempo_respuesta="1 día hábil",
                        tiene_pago=True,
                        modalidad="mixto",
                        categoria="Impuestos",
                        requisitos=["Número de ficha catastral", "Documento de identidad del propietario"],
                        instructivo=[
                            "Ingresar al portal de pagos con la ficha catastral",
                            "Descargar la factura",
                            "Pagar en bancos autorizados o en línea",
                        ],
                        visualizacion_gov="https://www.gov.co/ficha-tramites-y-servicios/T-010-011-001",
                    ),
                    dict(
                        codigo_unico="T-010-011-002",
                        nombre="Paz y salvo de impuesto predial",
                        descripcion=(
                            "Certificado que acredita que el predio se encuentra al día con el "
                            "impuesto predial unificado."
                        ),
                        tiempo_respuesta="3 días hábiles",
                        tiene_pago=True,
                        modalidad="virtual",
                        categoria="Certificados",
                        requisitos=["Recibo de pago del impuesto predial del año en curso"],
                        instructivo=["Radicar la solicitud en línea", "Descargar el certificado"],
                    ),
                ],
                opas=[
                    dict(
                        codigo_opa="OPA-010-011-001",
                        nombre="Acuerdo de pago de impuestos",
                        descripcion=(
                            "Autorización para pagar por cuotas las obligaciones tributarias "
                            "vencidas con el municipio."
                        ),
                        tiempo_respuesta="15 días hábiles",
                        tiene_pago=False,
                        requisitos=["Solicitud escrita", "Documento de identidad", "Soporte de ingresos"],
                    ),
                ],
                faqs=[
                    dict(
                        tema="Impuesto predial",
                        pregunta="¿Dónde puedo pagar el impuesto predial?",
                        respuesta=(
                            "Puede pagarlo en línea con la ficha catastral o en las entidades "
                            "bancarias autorizadas presentando la factura."
                        ),
                        palabras_clave=["predial", "pago", "impuestos"],
                    ),
                    dict(
                        tema="Impuesto predial",
                        pregunta="¿Hay descuentos por pronto pago del predial?",
                        respuesta="Sí, se aplican descuentos si paga antes de la fecha fijada cada año.",
                        palabras_clave=["predial", "descuento"],
                    ),
                ],
            ),
        ],
    ),

    # =========================================================
    # Secretaría de Movilidad
    # =========================================================
    dict(
        codigo="020",
        nombre="Secretaría de Movilidad",
        descripcion="Tránsito, transporte y seguridad vial.",
        subdependencias=[
            dict(
                codigo="021",
                nombre="Dirección de Tránsito",
                tramites=[
                    dict(
                        codigo_unico="T-020-021-001",
                        nombre="Licencia de conducción",
                        descripcion=(
                            "Expedición, renovación o recategorización de la licencia de "
                            "conducción para vehículos automotores."
                        ),
                        tiempo_respuesta="1 día hábil",
                        tiene_pago=True,
                        modalidad="presencial",
                        categoria="Tránsito",
                        requisitos=["Documento de identidad", "Certificado médico de aptitud"],
                        instructivo=["Registrarse en el RUNT", "Presentar exámenes", "Pagar derechos"],
                    ),
                ],
                opas=[],
                faqs=[
                    dict(
                        tema="Licencias",
                        pregunta="¿Qué necesito para renovar mi licencia de conducción?",
                        respuesta="Documento de identidad y certificado médico de aptitud física vigente.",
                        palabras_clave=["licencia", "renovación", "tránsito"],
                    ),
                ],
            ),
        ],
    ),
]


def _seed_subdependencia(db, dependencia, datos: dict) -> dict:
    counts = {"tramites": 0, "opas": 0, "faqs": 0}
    sub = (
        db.query(Subdependencia)
        .filter(Subdependencia.dependencia_id == dependencia.id, Subdependencia.codigo == datos["codigo"])
        .first()
    )
    if not sub:
        sub = create_subdependencia(db, dependencia.id, datos["codigo"], datos["nombre"])

    for data in datos["tramites"]:
        if not get_tramite_by_codigo(db, data["codigo_unico"]):
            create_tramite(db, {**data, "subdependencia_id": sub.id})
            counts["tramites"] += 1

    for data in datos["opas"]:
        if not get_opa_by_codigo(db, data["codigo_opa"]):
            create_opa(db, {**data, "subdependencia_id": sub.id})
            counts["opas"] += 1

    for data in datos["faqs"]:
        exists = db.query(FAQ).filter(FAQ.subdependencia_id == sub.id, FAQ.pregunta == data["pregunta"]).first()
        if not exists:
            create_faq(db, {**data, "subdependencia_id": sub.id})
            counts["faqs"] += 1
    return counts


def main():
    init_db()
    totals = {"dependencias": 0, "tramites": 0, "opas": 0, "faqs": 0}
    with get_db_session() as db:
        for datos in SEED:
            dependencia = get_dependencia_by_codigo(db, datos["codigo"])
            if not dependencia:
                dependencia = create_dependencia(db, datos["codigo"], datos["nombre"], datos.get("descripcion"))
                totals["dependencias"] += 1
            for sub_datos in datos["subdependencias"]:
                for key, value in _seed_subdependencia(db, dependencia, sub_datos).items():
                    totals[key] += value

    for key, value in totals.items():
        print(f"✅ {key}: {value} nuevos")


if __name__ == "__main__":
    main()
