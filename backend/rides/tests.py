from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from common.testing import DROPOFF, NEAR_PICKUP, PICKUP, make_driver, make_rider, request_payload
from drivers.models import DriverProfile
from drivers.views import NearbyRequestsView
from services.ride_management import create_ride_request
from . import views
from .models import DriverResponse, Ride, RideRequest
from .tasks import expire_stale_ride_requests_task


class RideFlowApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.rider = make_rider('rider')
		self.driver_one = make_driver('driver_one')
		self.driver_two = make_driver('driver_two')

	def _post(self, view, path, user, data=None, **kwargs):
		request = self.factory.post(path, data or {}, format='json')
		force_authenticate(request, user=user)
		return view(request, **kwargs)

	def _put_status(self, user, ride_id, new_status):
		request = self.factory.put('/api/rides/%d/status/' % ride_id, {'status': new_status}, format='json')
		force_authenticate(request, user=user)
		return views.update_ride_status(request, ride_id=ride_id)

	def _phase(self):
		request = self.factory.get('/api/rides/rider/active/')
		force_authenticate(request, user=self.rider)
		return views.get_active_phase(request)

	def test_request_accept_complete_flow(self):
		request = self.factory.get('/api/rides/fare-estimate/', {
			'pickup_latitude': PICKUP[0],
			'pickup_longitude': PICKUP[1],
			'dropoff_latitude': DROPOFF[0],
			'dropoff_longitude': DROPOFF[1],
		})
		force_authenticate(request, user=self.rider)
		estimate = views.fare_estimate(request)
		self.assertEqual(estimate.status_code, 200)

		response = self._post(views.create_ride_request, '/api/rides/request/', self.rider, request_payload())
		self.assertEqual(response.status_code, 201)
		request_id = response.data['request']['id']
		self.assertEqual(response.data['request']['status'], 'open')
		self.assertEqual(response.data['request']['estimated_fare'], estimate.data['estimated_fare'])
		self.assertEqual(self._phase().data['phase'], 'searching')

		request = self.factory.get('/api/driver/nearby-requests/', {
			'latitude': NEAR_PICKUP[0],
			'longitude': NEAR_PICKUP[1],
		})
		force_authenticate(request, user=self.driver_one)
		nearby = NearbyRequestsView.as_view()(request)
		self.assertEqual([item['request_id'] for item in nearby.data['requests']], [request_id])

		response = self._post(
			views.accept_ride_request, '/api/rides/requests/%d/accept/' % request_id,
			self.driver_one, request_id=request_id
		)
		self.assertEqual(response.status_code, 200)
		ride_id = response.data['ride']['id']
		self.assertEqual(response.data['ride']['status'], 'driver_assigned')
		self.assertEqual(response.data['ride']['driver']['username'], 'driver_one')

		response = self._post(
			views.accept_ride_request, '/api/rides/requests/%d/accept/' % request_id,
			self.driver_two, request_id=request_id
		)
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'ride_not_available')

		phase = self._phase()
		self.assertEqual(phase.data['phase'], 'matched')
		self.assertEqual(phase.data['ride']['id'], ride_id)

		self.assertEqual(self._put_status(self.driver_one, ride_id, 'started').status_code, 200)
		self.assertEqual(self._phase().data['phase'], 'in_progress')

		response = self._put_status(self.driver_one, ride_id, 'completed')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['final_fare'], estimate.data['estimated_fare'])

		self.driver_one.driver_profile.refresh_from_db()
		self.driver_two.driver_profile.refresh_from_db()
		self.assertEqual(self.driver_one.driver_profile.status, DriverProfile.ONLINE)
		self.assertEqual(self.driver_two.driver_profile.status, DriverProfile.ONLINE)

		self.assertEqual(self._phase().data['phase'], 'completed')
		self.assertEqual(self._phase().data['phase'], 'idle')

		request = self.factory.get('/api/rides/rider/history/')
		force_authenticate(request, user=self.rider)
		history = views.rider_ride_history(request)
		self.assertEqual(history.data['count'], 1)

	def test_create_validation_error(self):
		response = self._post(
			views.create_ride_request, '/api/rides/request/', self.rider,
			request_payload(pickup_latitude=200)
		)
		self.assertEqual(response.status_code, 400)
		self.assertFalse(RideRequest.objects.exists())

	def test_create_conflict_when_request_open(self):
		self._post(views.create_ride_request, '/api/rides/request/', self.rider, request_payload())
		response = self._post(views.create_ride_request, '/api/rides/request/', self.rider, request_payload())

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'active_ride_exists')

	def test_roles_are_enforced(self):
		response = self._post(views.create_ride_request, '/api/rides/request/', self.driver_one, request_payload())
		self.assertEqual(response.status_code, 403)

		ride_request = create_ride_request(self.rider, **request_payload())
		response = self._post(
			views.accept_ride_request, '/api/rides/requests/%d/accept/' % ride_request.id,
			self.rider, request_id=ride_request.id
		)
		self.assertEqual(response.status_code, 403)

	def test_accept_unknown_request(self):
		response = self._post(
			views.accept_ride_request, '/api/rides/requests/999/accept/',
			self.driver_one, request_id=999
		)
		self.assertEqual(response.status_code, 404)

	def test_reject_is_idempotent(self):
		ride_request = create_ride_request(self.rider, **request_payload())

		for _ in range(2):
			response = self._post(
				views.reject_ride_request, '/api/rides/requests/%d/reject/' % ride_request.id,
				self.driver_one, request_id=ride_request.id
			)
			self.assertEqual(response.status_code, 200)

		self.assertEqual(DriverResponse.objects.filter(request=ride_request).count(), 1)

	def test_cancel_request(self):
		ride_request = create_ride_request(self.rider, **request_payload())

		response = self._post(
			views.cancel_ride_request, '/api/rides/requests/%d/cancel/' % ride_request.id,
			self.rider, request_id=ride_request.id
		)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['request']['status'], 'cancelled')

		response = self._post(
			views.cancel_ride_request, '/api/rides/requests/%d/cancel/' % ride_request.id,
			self.rider, request_id=ride_request.id
		)
		self.assertEqual(response.status_code, 409)

	def test_status_update_checks_ownership_and_value(self):
		ride_request = create_ride_request(self.rider, **request_payload())
		response = self._post(
			views.accept_ride_request, '/api/rides/requests/%d/accept/' % ride_request.id,
			self.driver_one, request_id=ride_request.id
		)
		ride_id = response.data['ride']['id']

		self.assertEqual(self._put_status(self.driver_two, ride_id, 'started').status_code, 404)
		self.assertEqual(self._put_status(self.driver_one, ride_id, 'flying').status_code, 400)
		self.assertEqual(self._put_status(self.driver_one, ride_id, 'driver_assigned').status_code, 400)

	def test_expired_request_reported_to_rider(self):
		ride_request = create_ride_request(self.rider, **request_payload())
		RideRequest.objects.filter(pk=ride_request.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

		response = self._phase()

		self.assertEqual(response.data['phase'], 'idle')
		self.assertIn('expired', response.data['message'])
		ride_request.refresh_from_db()
		self.assertEqual(ride_request.status, 'expired')


class RideConstraintTests(TestCase):
	def setUp(self):
		self.driver = make_driver()

	def _ride_for(self, ride_request):
		return Ride.objects.create(
			request=ride_request,
			rider=ride_request.rider,
			driver=self.driver,
			pickup_latitude=ride_request.pickup_latitude,
			pickup_longitude=ride_request.pickup_longitude,
			pickup_address=ride_request.pickup_address,
			dropoff_latitude=ride_request.dropoff_latitude,
			dropoff_longitude=ride_request.dropoff_longitude,
			dropoff_address=ride_request.dropoff_address,
		)

	def test_one_ride_per_request(self):
		ride_request = create_ride_request(make_rider(), **request_payload())
		self._ride_for(ride_request)

		with self.assertRaises(IntegrityError), transaction.atomic():
			self._ride_for(ride_request)

	def test_one_active_ride_per_driver(self):
		self._ride_for(create_ride_request(make_rider('first'), **request_payload()))

		with self.assertRaises(IntegrityError), transaction.atomic():
			self._ride_for(create_ride_request(make_rider('second'), **request_payload()))

	def test_finished_rides_do_not_count_as_active(self):
		ride = self._ride_for(create_ride_request(make_rider('first'), **request_payload()))
		ride.status = Ride.COMPLETED
		ride.save(update_fields=['status'])

		self._ride_for(create_ride_request(make_rider('second'), **request_payload()))
		self.assertEqual(Ride.objects.filter(driver=self.driver).count(), 2)


class ExpirySweepTests(TestCase):
	def setUp(self):
		past = timezone.now() - timedelta(minutes=10)
		self.stale = create_ride_request(make_rider('stale'), now=past, **request_payload())
		self.fresh = create_ride_request(make_rider('fresh'), **request_payload())

	def test_expire_ride_requests_command(self):
		out = StringIO()
		call_command('expire_ride_requests', stdout=out)

		self.stale.refresh_from_db()
		self.fresh.refresh_from_db()
		self.assertEqual(self.stale.status, 'expired')
		self.assertEqual(self.fresh.status, 'open')
		self.assertIn('Expired 1', out.getvalue())

	def test_expire_ride_requests_dry_run(self):
		out = StringIO()
		call_command('expire_ride_requests', '--dry-run', stdout=out)

		self.stale.refresh_from_db()
		self.assertEqual(self.stale.status, 'open')
		self.assertIn('Would expire 1', out.getvalue())

	def test_sweep_task(self):
		self.assertEqual(expire_stale_ride_requests_task(), 1)
		self.stale.refresh_from_db()
		self.assertEqual(self.stale.status, 'expired')
