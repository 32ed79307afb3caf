"""
Profile service - lazy creation and sanitized updates
"""
from sqlalchemy.orm import Session

from outreach.app.models.profile import Profile
from outreach.app.models.user import User


def profile_completion(profile: Profile | None) -> int:
    """Percentage of the profile sections that are filled in."""
    if profile is None:
        return 0
    sections = [
        profile.headline,
        profile.bio,
        profile.skills,
        profile.interests,
        profile.education,
        profile.experience,
        profile.goals,
        profile.linkedin_url or profile.github_url or profile.portfolio_url,
    ]
    filled = sum(1 for s in sections if s)
    return round(filled * 100 / len(sections))


class ProfileService:
    @staticmethod
    def get_or_create_profile(db: Session, user: User) -> Profile:
        """Get existing profile or create empty one for user"""
        profile = db.query(Profile).filter(Profile.user_id == user.id).first()
        if not profile:
            profile = Profile(user_id=user.id)
            db.add(profile)
            db.commit()
            db.refresh(profile)
        return profile

    @staticmethod
    def update_profile(db: Session, user: User, data: dict) -> Profile:
        """Apply an already sanitized update. `name` goes to the user row."""
        profile = ProfileService.get_or_create_profile(db, user)
        data = dict(data)
        if "name" in data:
            name = data.pop("name")
            if name:
                user.name = name
        for key, value in data.items():
            setattr(profile, key, value)
        db.commit()
        db.refresh(profile)
        return profile
