"""
API HTTP del portal ciudadano.

Esta capa expone endpoints REST sobre el core (`portal_core`): catálogo de
trámites/OPAs, FAQs, PQRS, búsqueda unificada, import/export y el asistente
virtual.

La API está diseñada para ser consumida por:
- El portal web ciudadano
- El panel de funcionarios
- Integraciones (ej: canal de WhatsApp)
"""
