import json
import math
from itertools import permutations
from unittest import mock

import requests
from django.core.exceptions import ImproperlyConfigured
from django.test import Client, SimpleTestCase, TestCase, override_settings

from . import services
from .bounds import compute_bounds
from .directions import DirectionsClient, LegGeometry, LegRoutingError
from .models import Vehicle
from .passengers import DataFetchError, PassengerDataSource
from .routing import Route, RouteLeg, aggregate_route, build_route
from .stops import (
    Gender,
    MissingPriorityError,
    Stop,
    StopKind,
    offset_duplicate_stops,
    sequence_stops,
)

RADIUS = 0.0001


def passenger(identifier, lat=13.0, lng=80.2, priority=1, gender=Gender.MALE):
    return Stop(lat, lng, identifier, StopKind.PASSENGER, priority, gender)


def json_response(payload):
    response = mock.Mock(status_code=200)
    response.json.return_value = payload
    return response


def error_response(status_code):
    response = mock.Mock(status_code=status_code)
    response.raise_for_status.side_effect = requests.exceptions.HTTPError(
        f"{status_code} Server Error", response=response
    )
    return response


def undecodable_response():
    response = mock.Mock(status_code=200)
    response.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
    return response


def ors_payload(*coordinates, distance=1000.0):
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "geometry": {"type": "LineString", "coordinates": [list(c) for c in coordinates]},
                "properties": {"summary": {"distance": distance, "duration": 120.0}},
            }
        ],
    }


class RecordingDirections:
    """Stands in for DirectionsClient and remembers every leg it was asked for."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def fetch_leg(self, origin, destination):
        self.calls.append((origin, destination))
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            raise LegRoutingError("No route data available")
        return LegGeometry(
            points=(origin.position, destination.position),
            distance_m=500.0,
        )


class StaticPassengers:
    def __init__(self, stops=None, error=None):
        self.stops = stops or []
        self.error = error

    def fetch(self, vehicle_id):
        if self.error is not None:
            raise self.error
        return list(self.stops)


class StopModelTests(SimpleTestCase):
    def test_rejects_out_of_range_coordinates(self):
        with self.assertRaises(ValueError):
            Stop(91.0, 80.0, "bad", StopKind.PASSENGER)
        with self.assertRaises(ValueError):
            Stop(13.0, -180.5, "bad", StopKind.PASSENGER)

    def test_icon_hint_follows_kind_and_gender(self):
        self.assertEqual(passenger("F", gender=Gender.FEMALE).icon, "female")
        self.assertEqual(passenger("M", gender=None).icon, "male")
        self.assertEqual(services.STARTING_POINT.icon, "starting_point")
        self.assertEqual(services.CAB_FLEET[0].icon, "cab")

    def test_gender_parse_is_lenient(self):
        self.assertIs(Gender.parse("female"), Gender.FEMALE)
        self.assertIs(Gender.parse("Male"), Gender.MALE)
        self.assertIsNone(Gender.parse("unknown"))
        self.assertIsNone(Gender.parse(None))


class DeduplicationTests(SimpleTestCase):
    def test_shared_coordinate_spread_on_circle(self):
        stops = [passenger(f"E{i}") for i in range(5)]
        adjusted = offset_duplicate_stops(stops, radius=RADIUS)

        self.assertEqual(len(adjusted), 5)
        positions = {stop.position for stop in adjusted}
        self.assertEqual(len(positions), 5)
        for stop in adjusted:
            distance = math.hypot(stop.latitude - 13.0, stop.longitude - 80.2)
            self.assertAlmostEqual(distance, RADIUS, places=12)

    def test_unique_coordinates_untouched_and_order_kept(self):
        stops = [
            passenger("A", 13.0, 80.2),
            passenger("B", 13.1, 80.3),
            passenger("C", 13.0, 80.2),
        ]
        adjusted = offset_duplicate_stops(stops, radius=RADIUS)

        self.assertEqual([s.identifier for s in adjusted], ["A", "B", "C"])
        self.assertEqual(adjusted[1], stops[1])
        # First member of a group sits at angle zero.
        self.assertAlmostEqual(adjusted[0].latitude, 13.0 + RADIUS)
        self.assertAlmostEqual(adjusted[0].longitude, 80.2)
        self.assertAlmostEqual(adjusted[2].latitude, 13.0 - RADIUS)

    def test_near_duplicates_are_not_grouped(self):
        stops = [passenger("A", 13.0, 80.2), passenger("B", 13.0000001, 80.2)]
        self.assertEqual(offset_duplicate_stops(stops, radius=RADIUS), stops)

    def test_stops_at_the_pole_stay_valid(self):
        for lat in (90.0, -90.0):
            with self.subTest(lat=lat):
                stops = [passenger("A", lat, 10.0), passenger("B", lat, 10.0)]
                adjusted = offset_duplicate_stops(stops, radius=RADIUS)

                self.assertEqual(len(adjusted), 2)
                self.assertNotEqual(adjusted[0].position, adjusted[1].position)
                for stop in adjusted:
                    self.assertLessEqual(abs(stop.latitude), 90.0)
                    self.assertAlmostEqual(abs(stop.latitude), 90.0 - RADIUS)
                # Crossing the pole lands on the opposite meridian.
                self.assertIn(-170.0, [round(stop.longitude, 6) for stop in adjusted])

    def test_stops_on_the_antimeridian_wrap(self):
        for lng in (180.0, -180.0):
            with self.subTest(lng=lng):
                stops = [passenger(str(i), 0.0, lng) for i in range(4)]
                adjusted = offset_duplicate_stops(stops, radius=RADIUS)

                self.assertEqual(len({stop.position for stop in adjusted}), 4)
                for stop in adjusted:
                    self.assertLessEqual(abs(stop.longitude), 180.0)
                self.assertAlmostEqual(abs(adjusted[1].longitude), 180.0 - RADIUS)

    @override_settings(ROUTING_CONFIG={"duplicate_offset_degrees": 0.001})
    def test_radius_read_from_settings(self):
        adjusted = offset_duplicate_stops([passenger("A"), passenger("B")])
        self.assertAlmostEqual(adjusted[0].latitude, 13.001)


class SequencingTests(SimpleTestCase):
    def test_sorted_by_priority(self):
        stops = [passenger("C", priority=3), passenger("A", priority=1), passenger("B", priority=2)]
        ordered = sequence_stops(stops)
        self.assertEqual([s.identifier for s in ordered], ["A", "B", "C"])

    def test_ties_keep_input_order(self):
        stops = [passenger("X", priority=2), passenger("Y", priority=1), passenger("Z", priority=2)]
        ordered = sequence_stops(stops)
        self.assertEqual([s.identifier for s in ordered], ["Y", "X", "Z"])

    def test_priority_order_independent_of_permutation(self):
        stops = [passenger(str(i), priority=p) for i, p in enumerate([4, 1, 3, 1, 2])]
        expected = [1, 1, 2, 3, 4]
        for perm in permutations(stops):
            self.assertEqual([s.priority for s in sequence_stops(perm)], expected)

    def test_missing_priority_is_reported(self):
        stops = [passenger("A", priority=1), passenger("B", priority=None)]
        with self.assertRaises(MissingPriorityError) as ctx:
            sequence_stops(stops)
        self.assertEqual(ctx.exception.identifiers, ["B"])


class BoundsTests(SimpleTestCase):
    def test_single_stop_collapses_to_point(self):
        bounds = compute_bounds([passenger("A", 12.97, 80.25)])
        self.assertEqual(bounds.as_leaflet(), [[12.97, 80.25], [12.97, 80.25]])

    def test_box_covers_every_stop(self):
        bounds = compute_bounds(
            [passenger("A", 12.9, 80.3), passenger("B", 13.1, 80.1), passenger("C", 13.0, 80.2)]
        )
        self.assertEqual(bounds.south_west_lat, 12.9)
        self.assertEqual(bounds.south_west_lng, 80.1)
        self.assertEqual(bounds.north_east_lat, 13.1)
        self.assertEqual(bounds.north_east_lng, 80.3)

    def test_empty_input_has_no_bounds(self):
        self.assertIsNone(compute_bounds([]))


@override_settings(ROUTING_CONFIG={"api_key": "test-key", "directions_url": "https://ors.test/v2/directions"})
class DirectionsClientTests(SimpleTestCase):
    def setUp(self):
        self.origin = passenger("A", 13.0, 80.2)
        self.destination = passenger("B", 13.05, 80.25)

    def test_missing_api_key_is_a_configuration_error(self):
        with override_settings(ROUTING_CONFIG={}):
            with self.assertRaises(ImproperlyConfigured):
                DirectionsClient()

    @mock.patch("trips.directions.requests.get")
    def test_request_uses_lng_lat_and_flips_geometry(self, mock_get):
        mock_get.return_value = json_response(ors_payload((80.2, 13.0), (80.25, 13.05)))

        leg = DirectionsClient().fetch_leg(self.origin, self.destination)

        self.assertEqual(leg.points, ((13.0, 80.2), (13.05, 80.25)))
        self.assertEqual(leg.distance_m, 1000.0)
        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], "https://ors.test/v2/directions/driving-car")
        self.assertEqual(kwargs["params"]["start"], "80.2,13.0")
        self.assertEqual(kwargs["params"]["end"], "80.25,13.05")
        self.assertEqual(kwargs["params"]["api_key"], "test-key")
        self.assertEqual(kwargs["params"]["format"], "geojson")

    @mock.patch("trips.directions.requests.get")
    def test_empty_feature_array_fails(self, mock_get):
        mock_get.return_value = json_response({"features": []})
        with self.assertRaises(LegRoutingError):
            DirectionsClient().fetch_leg(self.origin, self.destination)

    @mock.patch("trips.directions.requests.get")
    def test_feature_without_coordinates_fails(self, mock_get):
        mock_get.return_value = json_response({"features": [{"geometry": {"coordinates": []}}]})
        with self.assertRaises(LegRoutingError):
            DirectionsClient().fetch_leg(self.origin, self.destination)

    @mock.patch("trips.directions.requests.get")
    def test_transport_error_fails(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(LegRoutingError):
            DirectionsClient().fetch_leg(self.origin, self.destination)

    @mock.patch("trips.directions.requests.get")
    def test_error_status_fails(self, mock_get):
        mock_get.return_value = error_response(403)
        with self.assertRaises(LegRoutingError):
            DirectionsClient().fetch_leg(self.origin, self.destination)

    @mock.patch("trips.directions.requests.get")
    def test_undecodable_body_fails(self, mock_get):
        mock_get.return_value = undecodable_response()
        with self.assertRaises(LegRoutingError):
            DirectionsClient().fetch_leg(self.origin, self.destination)

    @mock.patch("trips.directions.requests.get")
    def test_unexpected_feature_shapes_fail(self, mock_get):
        payloads = [
            {"features": ["x"]},
            {"features": [None]},
            {"features": {"a": 1}},
            {"features": [{"geometry": [1, 2]}]},
            {"features": [{"geometry": {"coordinates": "80.2,13.0"}}]},
            {"features": [{"geometry": {"coordinates": [{"lng": 80.2}]}}]},
            ["not", "a", "collection"],
        ]
        for payload in payloads:
            with self.subTest(payload=payload):
                mock_get.return_value = json_response(payload)
                with self.assertRaises(LegRoutingError):
                    DirectionsClient().fetch_leg(self.origin, self.destination)

    @mock.patch("trips.directions.requests.get")
    def test_non_numeric_summary_is_ignored(self, mock_get):
        payload = ors_payload((80.2, 13.0), (80.25, 13.05))
        payload["features"][0]["properties"] = {"summary": {"distance": "far"}}
        mock_get.return_value = json_response(payload)

        leg = DirectionsClient().fetch_leg(self.origin, self.destination)

        self.assertIsNone(leg.distance_m)
        self.assertEqual(len(leg.points), 2)


class RouteBuildingTests(SimpleTestCase):
    def setUp(self):
        self.a = Stop(12.97, 80.25, "A", StopKind.STARTING_POINT)
        self.b = passenger("B", 13.0, 80.2)
        self.c = passenger("C", 13.1, 80.3)

    def test_legs_requested_in_order(self):
        directions = RecordingDirections()
        route = build_route(self.a, [self.b, self.c], directions)

        self.assertEqual(
            [(o.identifier, d.identifier) for o, d in directions.calls],
            [("A", "B"), ("B", "C")],
        )
        self.assertEqual(len(route.legs), 2)
        # Shared endpoint repeats at the leg boundary.
        self.assertEqual(
            list(route.points),
            [self.a.position, self.b.position, self.b.position, self.c.position],
        )
        self.assertEqual(route.distance_km, 1.0)

    def test_failed_middle_leg_produces_no_route(self):
        d = passenger("D", 13.2, 80.4)
        directions = RecordingDirections(fail_on=2)

        with self.assertRaises(LegRoutingError) as ctx:
            build_route(self.a, [self.b, self.c, d], directions)

        self.assertEqual(ctx.exception.leg_index, 1)
        self.assertEqual(len(directions.calls), 2)

    def test_no_passengers_means_empty_route_without_calls(self):
        directions = RecordingDirections()
        route = build_route(self.a, [], directions)
        self.assertEqual(route, Route.empty())
        self.assertEqual(directions.calls, [])

    def test_aggregate_rejects_leg_without_geometry(self):
        legs = [
            RouteLeg(self.a, self.b, ((13.0, 80.2),)),
            RouteLeg(self.b, self.c, None),
        ]
        with self.assertRaises(LegRoutingError):
            aggregate_route(legs)

    def test_unknown_leg_distance_leaves_total_unknown(self):
        route = aggregate_route([RouteLeg(self.a, self.b, ((13.0, 80.2),))])
        self.assertIsNone(route.distance_km)


class PassengerDataSourceTests(SimpleTestCase):
    @mock.patch("trips.passengers.requests.get")
    def test_employees_mapped_to_passenger_stops(self, mock_get):
        mock_get.return_value = json_response(
            {
                "employees": [
                    {
                        "Latitude": 13.0,
                        "Longitude": 80.2,
                        "EmployeeId": "EMP01",
                        "EmployeeGender": "Female",
                        "PriorityOrder": "2",
                    },
                    {
                        "Latitude": "12.95",
                        "Longitude": "80.21",
                        "EmployeeId": 7,
                        "EmployeeGender": "Male",
                    },
                ]
            }
        )

        stops = PassengerDataSource(base_url="http://rides.test/").fetch("V42")

        mock_get.assert_called_once_with("http://rides.test/rides/V42", timeout=mock.ANY)
        self.assertEqual(stops[0].identifier, "EMP01")
        self.assertEqual(stops[0].priority, 2)
        self.assertIs(stops[0].gender, Gender.FEMALE)
        self.assertIs(stops[0].kind, StopKind.PASSENGER)
        self.assertEqual(stops[1].position, (12.95, 80.21))
        self.assertEqual(stops[1].identifier, "7")
        self.assertIsNone(stops[1].priority)

    @mock.patch("trips.passengers.requests.get")
    def test_missing_employee_array_is_an_error(self, mock_get):
        mock_get.return_value = json_response({"rides": []})
        with self.assertRaises(DataFetchError):
            PassengerDataSource().fetch("V1")

    @mock.patch("trips.passengers.requests.get")
    def test_malformed_record_is_an_error(self, mock_get):
        mock_get.return_value = json_response({"employees": [{"EmployeeId": "E1"}]})
        with self.assertRaises(DataFetchError):
            PassengerDataSource().fetch("V1")

    @mock.patch("trips.passengers.requests.get")
    def test_unreachable_service_is_an_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout("slow")
        with self.assertRaises(DataFetchError):
            PassengerDataSource().fetch("V1")

    @mock.patch("trips.passengers.requests.get")
    def test_error_status_is_an_error(self, mock_get):
        mock_get.return_value = error_response(502)
        with self.assertRaises(DataFetchError):
            PassengerDataSource().fetch("V1")

    @mock.patch("trips.passengers.requests.get")
    def test_undecodable_body_is_an_error(self, mock_get):
        mock_get.return_value = undecodable_response()
        with self.assertRaises(DataFetchError):
            PassengerDataSource().fetch("V1")


class PlanRouteTests(SimpleTestCase):
    def test_shared_pickup_sorted_and_offset_before_routing(self):
        source = StaticPassengers(
            [passenger("P2", 13.0, 80.2, priority=2), passenger("P1", 13.0, 80.2, priority=1)]
        )
        directions = RecordingDirections()

        plan = services.plan_route("V1", passenger_source=source, directions_client=directions)

        self.assertEqual(plan.status, services.STATUS_OK)
        self.assertEqual([s.identifier for s in plan.stops], ["Starting Point", "P1", "P2"])
        p1, p2 = plan.stops[1], plan.stops[2]
        self.assertNotEqual(p1.position, p2.position)
        for stop in (p1, p2):
            self.assertNotEqual(stop.position, (13.0, 80.2))
            self.assertAlmostEqual(
                math.hypot(stop.latitude - 13.0, stop.longitude - 80.2), RADIUS, places=12
            )
        # Routing already sees the offset coordinates.
        self.assertEqual(directions.calls[0][1], p1)
        self.assertEqual(directions.calls[1], (p1, p2))
        self.assertEqual(plan.bounds, compute_bounds(plan.stops))

    @override_settings(ROUTING_CONFIG={"api_key": "test-key"})
    @mock.patch("trips.directions.requests.get")
    def test_empty_features_on_first_leg_skips_second(self, mock_get):
        mock_get.return_value = json_response({"type": "FeatureCollection", "features": []})
        source = StaticPassengers(
            [passenger("P1", 13.0, 80.2, priority=1), passenger("P2", 13.1, 80.3, priority=2)]
        )

        plan = services.plan_route("V1", passenger_source=source, directions_client=DirectionsClient())

        self.assertIsNone(plan.route)
        self.assertEqual(plan.status, services.STATUS_ROUTING_UNAVAILABLE)
        self.assertIn("No route available.", plan.notices)
        self.assertEqual(mock_get.call_count, 1)

    @override_settings(ROUTING_CONFIG={"api_key": "test-key"})
    @mock.patch("trips.directions.requests.get")
    def test_malformed_features_become_routing_unavailable(self, mock_get):
        mock_get.return_value = json_response({"features": ["x"]})
        source = StaticPassengers([passenger("P1", 13.0, 80.2, priority=1)])

        plan = services.plan_route("V1", passenger_source=source, directions_client=DirectionsClient())

        self.assertIsNone(plan.route)
        self.assertEqual(plan.status, services.STATUS_ROUTING_UNAVAILABLE)

    @override_settings(ROUTING_CONFIG={})
    def test_missing_api_key_becomes_routing_unavailable(self):
        source = StaticPassengers([passenger("P1", 13.0, 80.2, priority=1)])

        plan = services.plan_route("V1", passenger_source=source)

        self.assertIsNone(plan.route)
        self.assertEqual(plan.status, services.STATUS_ROUTING_UNAVAILABLE)
        self.assertEqual(len(plan.stops), 2)

    def test_shared_pickup_at_the_pole(self):
        source = StaticPassengers(
            [passenger("A", 90.0, 10.0, priority=1), passenger("B", 90.0, 10.0, priority=2)]
        )

        plan = services.plan_route("V1", passenger_source=source, directions_client=RecordingDirections())

        self.assertEqual(plan.status, services.STATUS_OK)
        self.assertEqual(len(plan.route.legs), 2)

    def test_passenger_fetch_failure_degrades_to_empty(self):
        directions = RecordingDirections()
        plan = services.plan_route(
            "V1",
            passenger_source=StaticPassengers(error=DataFetchError("down")),
            directions_client=directions,
        )

        self.assertEqual(plan.status, services.STATUS_PASSENGER_DATA_UNAVAILABLE)
        self.assertEqual(plan.stops, [services.STARTING_POINT])
        self.assertEqual(plan.route, Route.empty())
        self.assertEqual(len(plan.notices), 1)
        self.assertEqual(directions.calls, [])

    def test_missing_priority_blocks_routing(self):
        directions = RecordingDirections()
        plan = services.plan_route(
            "V1",
            passenger_source=StaticPassengers([passenger("P1", priority=None)]),
            directions_client=directions,
        )

        self.assertEqual(plan.status, services.STATUS_MISSING_PRIORITY)
        self.assertIsNone(plan.route)
        self.assertIn("P1", plan.notices[0])
        self.assertEqual(directions.calls, [])

    def test_no_passengers(self):
        plan = services.plan_route(
            "V1",
            passenger_source=StaticPassengers([]),
            directions_client=RecordingDirections(),
        )
        self.assertEqual(plan.status, services.STATUS_NO_PASSENGERS)
        self.assertEqual(plan.bounds.as_leaflet()[0], [12.978581, 80.2500201])


class RouteSessionTests(SimpleTestCase):
    def _plan(self, vehicle_id, status=services.STATUS_OK):
        stops = [services.STARTING_POINT]
        return services.RoutePlan(vehicle_id, stops, Route.empty(), compute_bounds(stops), status)

    def test_commits_active_selection(self):
        session = services.RouteSession(planner=lambda vehicle_id: self._plan(vehicle_id))
        plan = session.select_vehicle("V1")
        self.assertIs(session.current, plan)

    def test_stale_result_does_not_overwrite_newer_selection(self):
        session = services.RouteSession()

        def planner(vehicle_id):
            if vehicle_id == "A":
                # A newer selection lands while A is still being computed.
                session.select_vehicle("B")
            return self._plan(vehicle_id)

        session._planner = planner

        self.assertIsNone(session.select_vehicle("A"))
        self.assertEqual(session.current.vehicle_id, "B")
        self.assertEqual(session.active_vehicle_id, "B")

    def test_stale_failure_leaves_state_untouched(self):
        session = services.RouteSession(planner=lambda vehicle_id: self._plan(vehicle_id))
        session.select_vehicle("B")
        good = session.current

        stale_token = session.begin("A")
        session.begin("B")
        committed = session.commit(
            stale_token, self._plan("A", services.STATUS_ROUTING_UNAVAILABLE)
        )

        self.assertFalse(committed)
        self.assertIs(session.current, good)

    def test_each_client_has_its_own_session(self):
        services.ROUTE_SESSIONS.clear()
        first = services.get_route_session("client-1")

        self.assertIs(services.get_route_session("client-1"), first)
        self.assertIsNot(services.get_route_session("client-2"), first)


class FleetAPITests(TestCase):
    def setUp(self):
        self.client = Client()

    def test_all_cabs_and_starting_point(self):
        response = self.client.get("/api/vehicles/")
        self.assertEqual(response.status_code, 200)

        payload = response.json()
        self.assertEqual(len(payload["markers"]), 5)
        self.assertEqual({m["icon"] for m in payload["markers"]}, {"cab", "starting_point"})
        self.assertEqual(payload["bounds"]["padding"], [50, 50])

    def test_starting_point_only(self):
        payload = self.client.get("/api/vehicles/?show_all=0").json()
        self.assertEqual(len(payload["markers"]), 1)
        self.assertEqual(
            payload["bounds"]["leaflet"],
            [[12.978581, 80.2500201], [12.978581, 80.2500201]],
        )


class VehicleRouteAPITests(TestCase):
    def setUp(self):
        services.ROUTE_SESSIONS.clear()
        self.client = Client()

    @mock.patch("trips.services.DirectionsClient")
    @mock.patch("trips.services.PassengerDataSource")
    def test_route_payload(self, mock_source, mock_directions):
        mock_source.return_value.fetch.return_value = [
            passenger("P1", 13.0, 80.2, priority=1, gender=Gender.FEMALE)
        ]
        mock_directions.return_value = RecordingDirections()

        response = self.client.get("/api/vehicles/V7/route/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["vehicle_id"], "V7")
        self.assertEqual(payload["status"], "ok")
        self.assertEqual([m["icon"] for m in payload["markers"]], ["starting_point", "female"])
        self.assertEqual(len(payload["route"]["legs"]), 1)
        self.assertEqual(payload["route"]["points"][-1], [13.0, 80.2])
        mock_source.return_value.fetch.assert_called_once_with("V7")
        self.assertEqual(services.ROUTE_SESSIONS["127.0.0.1"].current.vehicle_id, "V7")

    @mock.patch("trips.services.PassengerDataSource")
    def test_unreachable_rides_service_is_not_fatal(self, mock_source):
        mock_source.return_value.fetch.side_effect = DataFetchError("down")

        response = self.client.get("/api/vehicles/V7/route/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "passenger_data_unavailable")
        self.assertEqual(payload["route"]["points"], [])

    @override_settings(ROUTING_CONFIG={})
    @mock.patch("trips.services.PassengerDataSource")
    def test_missing_api_key_is_not_fatal(self, mock_source):
        mock_source.return_value.fetch.return_value = [passenger("P1", priority=1)]

        response = self.client.get("/api/vehicles/V7/route/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "routing_unavailable")

    @mock.patch("trips.services.PassengerDataSource")
    def test_clients_keep_separate_selections(self, mock_source):
        mock_source.return_value.fetch.return_value = []

        self.client.get("/api/vehicles/V1/route/", HTTP_X_CLIENT_ID="dispatcher-a")
        self.client.get("/api/vehicles/V2/route/", HTTP_X_CLIENT_ID="dispatcher-b")

        self.assertEqual(services.ROUTE_SESSIONS["dispatcher-a"].current.vehicle_id, "V1")
        self.assertEqual(services.ROUTE_SESSIONS["dispatcher-b"].current.vehicle_id, "V2")


class AddVehicleAPITests(TestCase):
    def setUp(self):
        self.client = Client()
        self.payload = {
            "VehicleName": "Innova",
            "VehicleType": "SUV",
            "VehicleNumber": "TN09AB1234",
            "VendorId": "VEN-01",
            "VehicleInsuranceNumber": "INS-5567",
            "VehicleMileageRange": "14.5",
            "VehicleManufacturedYear": "2021",
            "VehicleFuelType": "Diesel",
            "VehicleSeatCapacity": "7",
            "VehicleImage": "https://res.cloudinary.com/demo/image/upload/v1/innova.png",
        }

    def _post(self, payload):
        return self.client.post(
            "/vehicle/addVehicle", data=payload, content_type="application/json"
        )

    def test_registers_vehicle(self):
        response = self._post(self.payload)

        self.assertEqual(response.status_code, 201)
        vehicle = Vehicle.objects.get(vehicle_number="TN09AB1234")
        self.assertEqual(vehicle.manufactured_year, 2021)
        self.assertEqual(vehicle.seat_capacity, 7)

    def test_rejects_bad_year_and_mileage(self):
        self.payload.update(VehicleManufacturedYear="99", VehicleMileageRange="far")

        response = self._post(self.payload)

        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertIn("VehicleManufacturedYear", errors)
        self.assertEqual(errors["VehicleMileageRange"], ["Mileage must be a number"])
        self.assertFalse(Vehicle.objects.exists())

    def test_image_is_required(self):
        self.payload["VehicleImage"] = ""
        errors = self._post(self.payload).json()["errors"]
        self.assertEqual(errors["VehicleImage"], ["Vehicle image is required"])

    def test_duplicate_vehicle_number(self):
        self._post(self.payload)
        response = self._post(self.payload)
        self.assertEqual(response.status_code, 400)
        self.assertIn("VehicleNumber", response.json()["errors"])

    def test_invalid_json(self):
        response = self.client.post(
            "/vehicle/addVehicle", data="{not json", content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)
