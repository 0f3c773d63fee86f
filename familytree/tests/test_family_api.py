import unittest

from familytree.tests.api_support import PNG, ApiTestCase


class FamilyApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.user_id, self.headers = self.register_paid()

    def create_member(self, files=None, path="/api/family", **fields):
        return self.client.post(path, data=fields, files=files, headers=self.headers)

    def test_create_answers_with_and_without_trailing_slash(self):
        for path in ("/api/family", "/api/family/"):
            response = self.create_member(path=path, name="Ann", relation="self")
            self.assertEqual(response.status_code, 201, path)
        tree = self.client.get(f"/api/family/{self.user_id}", headers=self.headers)
        self.assertEqual(len(tree.json()), 2)

    def test_create_member_with_photo_and_address(self):
        response = self.create_member(
            files={"photo": PNG},
            name="Ann",
            relation="self",
            gender="female",
            dob="1980-05-17T00:00:00.000Z",
            address_city="Pune",
            address_houseNo="12B",
        )
        self.assertEqual(response.status_code, 201, response.text)
        member = response.json()
        self.assertEqual(member["userId"], self.user_id)
        self.assertEqual(member["dob"], "1980-05-17")
        self.assertEqual(member["address"]["city"], "Pune")
        self.assertEqual(member["address"]["houseNo"], "12B")
        self.assertTrue(member["photoPublicId"].startswith("family-album/members/"))
        self.assertIn(member["photoPublicId"], self.images.stored_objects)

    def test_create_member_validation(self):
        response = self.create_member(name="Ann")
        self.assertEqual(response.status_code, 400)
        response = self.create_member(name="Ann", relation="self", gender="robot")
        self.assertEqual(response.status_code, 400)
        response = self.create_member(name="Ann", relation="self", dob="yesterday")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.list_members(self.user_id), [])

    def test_upload_failure_aborts_creation(self):
        self.images.fail_uploads = True
        response = self.create_member(files={"photo": PNG}, name="Ann", relation="self")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"], "Photo upload failed")
        self.assertEqual(self.db.list_members(self.user_id), [])

    def test_oversized_photo_rejected(self):
        big = ("big.png", b"x" * 2048, "image/png")
        response = self.create_member(files={"photo": big}, name="Ann", relation="self")
        self.assertEqual(response.status_code, 413)
        self.assertEqual(self.images.stored_objects, {})

    def test_tree_endpoint(self):
        root = self.create_member(name="Grandpa", relation="self").json()
        son = self.create_member(name="Dad", relation="son", parentId=root["id"]).json()
        wife = self.create_member(name="Mom", relation="Wife", parentId=son["id"]).json()
        self.create_member(name="Uncle", relation="brother", parentId=root["id"])

        response = self.client.get(f"/api/family/{self.user_id}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        forest = response.json()
        self.assertEqual([n["name"] for n in forest], ["Grandpa", "Uncle"])
        dad = forest[0]["children"][0]
        self.assertEqual(dad["id"], son["id"])
        self.assertEqual(dad["spouse"]["id"], wife["id"])
        self.assertEqual(dad["children"], [])

    def test_tree_for_other_user_forbidden(self):
        response = self.client.get("/api/family/someone-else", headers=self.headers)
        self.assertEqual(response.status_code, 403)

    def test_get_member(self):
        created = self.create_member(name="Ann", relation="self").json()
        response = self.client.get(
            f"/api/family/member/{created['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "Ann")

        missing = self.client.get("/api/family/member/nope", headers=self.headers)
        self.assertEqual(missing.status_code, 404)

    def test_members_are_owner_scoped(self):
        created = self.create_member(name="Ann", relation="self").json()
        _, other_headers = self.register_paid(name="Eve", email="eve@example.com")
        for method, url in (
            ("GET", f"/api/family/member/{created['id']}"),
            ("DELETE", f"/api/family/{created['id']}"),
        ):
            response = self.client.request(method, url, headers=other_headers)
            self.assertEqual(response.status_code, 404)
        response = self.client.put(
            f"/api/family/{created['id']}", data={"name": "Hacked"}, headers=other_headers
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.db.get_member(self.user_id, created["id"]).name, "Ann")

    def test_update_is_partial_and_replaces_photo(self):
        created = self.create_member(
            files={"photo": PNG}, name="Ann", relation="self", occupation="Nurse"
        ).json()
        old_photo = created["photoPublicId"]

        response = self.client.put(
            f"/api/family/{created['id']}",
            data={"address_country": "India", "dob": "1975-01-02"},
            files={"photo": PNG},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        updated = response.json()
        self.assertEqual(updated["name"], "Ann")
        self.assertEqual(updated["occupation"], "Nurse")
        self.assertEqual(updated["address"]["country"], "India")
        self.assertEqual(updated["dob"], "1975-01-02")
        self.assertNotEqual(updated["photoPublicId"], old_photo)
        self.assertNotIn(old_photo, self.images.stored_objects)

    def test_delete_cascades_to_descendants_only(self):
        root = self.create_member(name="Root", relation="self").json()
        child = self.create_member(name="Child", relation="son", parentId=root["id"]).json()
        self.create_member(
            files={"photo": PNG}, name="Grandchild", relation="daughter", parentId=child["id"]
        )
        self.create_member(name="Spouse", relation="wife", parentId=child["id"])
        other = self.create_member(name="Other", relation="self").json()

        response = self.client.delete(f"/api/family/{child['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 3)
        remaining = sorted(m.id for m in self.db.list_members(self.user_id))
        self.assertEqual(remaining, sorted([root["id"], other["id"]]))
        self.assertEqual(self.images.stored_objects, {})

        missing = self.client.delete(f"/api/family/{child['id']}", headers=self.headers)
        self.assertEqual(missing.status_code, 404)


if __name__ == "__main__":
    unittest.main()
