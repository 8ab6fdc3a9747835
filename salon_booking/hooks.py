app_name = "salon_booking"
app_title = "Salon Booking"
app_publisher = "Sebastian Ortiz Valencia"
app_description = "Reservas de citas para peluquería: calendario, disponibilidad y reprogramación"
app_email = "sebastianortiz989@gmail.com"
app_license = "mit"

# Apps
# ------------------

required_apps = ["frappe"]

# Installation
# ------------

after_install = "salon_booking.install.after_install"

# Scheduled Tasks
# ---------------

scheduler_events = {
	"hourly": [
		"salon_booking.salon_booking.scheduling.tasks.send_appointment_reminders"
	],
	"cron": {
		"15 3 * * *": [  # Diario, 03:15
			"salon_booking.salon_booking.scheduling.tasks.reschedule_displaced_appointments"
		]
	}
}

# Testing
# -------

before_tests = "salon_booking.install.before_tests"
