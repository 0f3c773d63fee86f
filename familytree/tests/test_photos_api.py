import unittest

from familytree.tests.api_support import PNG, ApiTestCase


class PhotosApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.user_id, self.headers = self.register()

    def upload(self, category=None, headers=None):
        data = {"category": category} if category else {}
        return self.client.post(
            "/api/photos/upload",
            data=data,
            files={"photo": PNG},
            headers=headers or self.headers,
        )

    def test_upload_and_list(self):
        response = self.upload()
        self.assertEqual(response.status_code, 201, response.text)
        photo = response.json()
        self.assertEqual(photo["category"], "general")
        self.assertEqual(photo["uploadedBy"], self.user_id)
        self.assertTrue(photo["publicId"].startswith("family-album/"))
        self.assertIn(photo["publicId"], self.images.stored_objects)

        self.upload(category="weddings")
        listed = self.client.get("/api/photos", headers=self.headers).json()
        self.assertEqual(len(listed), 2)
        weddings = self.client.get(
            "/api/photos/", params={"category": "weddings"}, headers=self.headers
        ).json()
        self.assertEqual([p["category"] for p in weddings], ["weddings"])

    def test_upload_requires_file(self):
        response = self.client.post(
            "/api/photos/upload", data={"category": "x"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "No file uploaded")

    def test_upload_requires_auth(self):
        response = self.client.post("/api/photos/upload", files={"photo": PNG})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.images.stored_objects, {})

    def test_delete(self):
        photo = self.upload().json()
        _, other = self.register(name="Eve", email="eve@example.com")
        foreign = self.client.delete(f"/api/photos/{photo['id']}", headers=other)
        self.assertEqual(foreign.status_code, 404)

        response = self.client.delete(f"/api/photos/{photo['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Deleted"})
        self.assertEqual(self.images.stored_objects, {})
        self.assertEqual(self.client.get("/api/photos/", headers=self.headers).json(), [])

    def test_delete_survives_release_failure(self):
        photo = self.upload().json()
        self.images.fail_destroys = True
        response = self.client.delete(f"/api/photos/{photo['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(self.db.get_photo(self.user_id, photo["id"]))


if __name__ == "__main__":
    unittest.main()
