"""
Scheduling Errors

Error taxonomy for the booking engine. Every class plugs into Frappe's
exception hierarchy so the request handler renders it with the right HTTP
status; `kind` is the stable identifier clients can rely on.
"""

import traceback
from typing import Any, Dict

import frappe


class BookingValidationError(frappe.ValidationError):
	"""Entrada mal formada."""

	kind = "validation"
	http_status_code = 400
	retriable = False


class InvalidTransitionError(BookingValidationError):
	"""Cambio de estado no permitido por el ciclo de vida."""

	kind = "invalid_transition"


class NotFoundError(frappe.DoesNotExistError):
	kind = "not_found"
	http_status_code = 404
	retriable = False


class UnknownServiceError(NotFoundError):
	kind = "unknown_service"


class BookingPermissionError(frappe.PermissionError):
	kind = "permission"
	http_status_code = 403
	retriable = False


class SlotUnavailableError(frappe.ValidationError):
	"""La hora pedida no es un slot ofrecido por el calendario."""

	kind = "slot_unavailable"
	http_status_code = 409
	retriable = False


class SlotConflictError(frappe.ValidationError):
	"""Otra reserva activa ya ocupa (date, time)."""

	kind = "slot_conflict"
	http_status_code = 409
	retriable = False


class OutOfRangeError(frappe.ValidationError):
	"""Fecha fuera del horizonte de reserva."""

	kind = "out_of_range"
	http_status_code = 400
	retriable = False


class ConfigurationError(frappe.ValidationError):
	kind = "configuration"
	http_status_code = 500
	retriable = False


class TransientError(frappe.ValidationError):
	"""Base de datos no disponible o contención de locks; se puede reintentar."""

	kind = "transient"
	http_status_code = 503
	retriable = True


class UnresolvableConflictError(frappe.ValidationError):
	"""El Conflict Resolver no encontró slot dentro de su horizonte."""

	kind = "unresolvable_conflict"
	http_status_code = 409
	retriable = False


def error_payload(exc: Exception) -> Dict[str, Any]:
	"""
	Representación estable de un error para respuestas de API.

	El traceback solo se incluye en developer_mode.
	"""
	payload = {
		"kind": getattr(exc, "kind", "internal"),
		"message": str(exc) or exc.__class__.__name__,
		"retriable": bool(getattr(exc, "retriable", False)),
	}
	if frappe.conf.get("developer_mode"):
		payload["traceback"] = "".join(
			traceback.format_exception(type(exc), exc, exc.__traceback__)
		)
	return payload
