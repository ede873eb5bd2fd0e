from bake import ImageBuilder



def main():
    # Example usage of the image builder
    aws_config = {
        "aws_access_key_id": "AKIAEXAMPLE",
        "aws_secret_access_key": "wJalrXUtnFEMI/K7MDENG/bPxRfiCYEXAMPLEKEY",
        "region_name": "us-west-1",
    }
    template = {
        "image_name": "web-base",
        "flavor": "t3.small",
        "source_image_name": "ubuntu-22.04",
        "communicator": {"ssh_username": "ubuntu"},
    }

    builder = ImageBuilder(template, "aws", aws_config)
    print(f"Steps: {[type(step).__name__ for step in builder.steps()]}")
    print(f"Artifact: {builder.run()}")

if __name__ == "__main__":
    main()
